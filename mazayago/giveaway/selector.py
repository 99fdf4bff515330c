"""Fair winner selection with an auditable before/after hash."""

from __future__ import annotations

from dataclasses import dataclass, field
import hashlib
import secrets
from typing import Any, Iterable, Optional, Protocol, Sequence

from ..errors import InsufficientEntriesError
from ..models import EntryStatus, WinnerType


class Candidate(Protocol):
    """Anything that looks like a ledger entry."""

    id: Any
    entry_status: str
    is_correct: Optional[bool]


class RandomSource(Protocol):
    def randrange(self, stop: int) -> int: ...


@dataclass(frozen=True)
class DrawAudit:
    """Fairness proof surfaced to operators after a draw.

    Attributes
    ----------
    seed : str
        Fresh random label mixed into ``hash_before``. It does not seed the
        sampling RNG, so it proves the population, not the pick.
    hash_before : str
        SHA-256 over the draw id, the seed and the sorted eligible ids.
    hash_after : str
        SHA-256 over the picked ids in pick order.
    """

    seed: str
    hash_before: str
    hash_after: str

    def to_json(self) -> dict[str, str]:
        return {
            "seed": self.seed,
            "hash_before": self.hash_before,
            "hash_after": self.hash_after,
        }


@dataclass(frozen=True)
class Pick:
    entry: Any
    rank: int
    winner_type: WinnerType


@dataclass(frozen=True)
class SelectionResult:
    picks: list[Pick] = field(default_factory=list)
    audit: Optional[DrawAudit] = None
    population_size: int = 0

    @property
    def entries(self) -> list[Any]:
        return [pick.entry for pick in self.picks]


def _sha256_hexdigest(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def compute_hash_before(draw_id: Any, seed: str, entry_ids: Iterable[Any]) -> str:
    """Commit to the eligible population before anything is picked.

    The digest input is ``"{draw_id}:{seed}:{ids}"`` where ``ids`` are the
    entry ids rendered as strings, sorted lexicographically and joined with
    ``","``; the string is UTF-8 encoded and the hex digest returned.
    """
    ids = sorted(str(entry_id) for entry_id in entry_ids)
    return _sha256_hexdigest(f"{draw_id}:{seed}:{','.join(ids)}")


def compute_hash_after(picked_ids: Iterable[Any]) -> str:
    """Digest of the picked ids, in pick order, joined with ``","``."""
    return _sha256_hexdigest(",".join(str(entry_id) for entry_id in picked_ids))


def eligible_population(
    entries: Iterable[Candidate], *, require_correct: bool = False
) -> list[Candidate]:
    """Filter ``entries`` down to the selection population, keeping order.

    Raises
    ------
    ValueError
        If two entries share an id; the ledger guarantees uniqueness.
    """
    population: list[Candidate] = []
    seen: set[str] = set()
    for entry in entries:
        key = str(entry.id)
        if key in seen:
            raise ValueError(f"Duplicate entry id {key!r} in selection input")
        seen.add(key)
        if entry.entry_status != EntryStatus.ELIGIBLE.value:
            continue
        if require_correct and entry.is_correct is not True:
            continue
        population.append(entry)
    return population


def pick_random_unique(
    items: Sequence[Any], count: int, rng: Optional[RandomSource] = None
) -> list[Any]:
    """Pick ``count`` items uniformly without replacement, one at a time."""
    source = list(items)
    rng = rng or secrets.SystemRandom()
    picked: list[Any] = []
    while len(picked) < count and source:
        picked.append(source.pop(rng.randrange(len(source))))
    return picked


def select_winners(
    entries: Iterable[Candidate],
    winners_count: int,
    alternates_count: int = 0,
    *,
    draw_id: Any,
    require_correct: bool = False,
    seed: Optional[str] = None,
    rng: Optional[RandomSource] = None,
) -> SelectionResult:
    """Select winners and alternates from ``entries``.

    Parameters
    ----------
    entries : Iterable[Candidate]
        Ledger entries in a stable order (by id).
    winners_count : int
        Number of ranks tagged ``WINNER``; must be at least 1.
    alternates_count : int, default: 0
        Number of ranks tagged ``ALTERNATE`` after the winners.
    draw_id : Any
        Draw identifier mixed into ``hash_before``.
    require_correct : bool, default: False
        Only sample entries flagged correct (``RANDOM_CORRECT`` draws).
    seed : Optional[str], default: None
        Audit seed; a fresh ``secrets.token_hex(8)`` when omitted.
    rng : Optional[RandomSource], default: None
        Source of ``randrange``; :class:`secrets.SystemRandom` when omitted.
        Supplying a seeded :class:`random.Random` makes the pick reproducible.

    Returns
    -------
    SelectionResult
        Picks in rank order plus the :class:`DrawAudit`.

    Raises
    ------
    InsufficientEntriesError
        If the population is empty or smaller than the number to pick.
    ValueError
        On invalid counts or duplicate entry ids.
    """
    if winners_count < 1:
        raise ValueError("winners_count must be at least 1")
    if alternates_count < 0:
        raise ValueError("alternates_count must be non-negative")

    population = eligible_population(entries, require_correct=require_correct)
    total = winners_count + alternates_count
    if not population or len(population) < total:
        raise InsufficientEntriesError(total, len(population))

    seed = seed if seed is not None else secrets.token_hex(8)
    hash_before = compute_hash_before(
        draw_id, seed, (entry.id for entry in population)
    )

    picked = pick_random_unique(population, total, rng)
    picks = [
        Pick(
            entry=entry,
            rank=index + 1,
            winner_type=(
                WinnerType.WINNER if index < winners_count else WinnerType.ALTERNATE
            ),
        )
        for index, entry in enumerate(picked)
    ]
    audit = DrawAudit(
        seed=seed,
        hash_before=hash_before,
        hash_after=compute_hash_after(entry.id for entry in picked),
    )
    return SelectionResult(picks=picks, audit=audit, population_size=len(population))


__all__ = [
    "DrawAudit",
    "Pick",
    "SelectionResult",
    "compute_hash_after",
    "compute_hash_before",
    "eligible_population",
    "pick_random_unique",
    "select_winners",
]
