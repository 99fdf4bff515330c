import hashlib
import random
import unittest
from dataclasses import dataclass
from typing import Optional

from mazayago.errors import InsufficientEntriesError
from mazayago.giveaway.selector import (
    compute_hash_after,
    compute_hash_before,
    eligible_population,
    pick_random_unique,
    select_winners,
)
from mazayago.models import WinnerType


@dataclass
class FakeEntry:
    id: str
    entry_status: str = "ELIGIBLE"
    is_correct: Optional[bool] = None


def make_entries(count: int, prefix: str = "e") -> list[FakeEntry]:
    return [FakeEntry(id=f"{prefix}{index}") for index in range(count)]


class HashConstructionTests(unittest.TestCase):
    def test_hash_before_reproducible(self):
        seed = "00ff00ff00ff00ff"
        expected = hashlib.sha256(f"42:{seed}:a,b,c".encode("utf-8")).hexdigest()
        self.assertEqual(compute_hash_before(42, seed, ["a", "b", "c"]), expected)

    def test_hash_before_ignores_input_order(self):
        seed = "1234"
        self.assertEqual(
            compute_hash_before("d1", seed, ["c", "a", "b"]),
            compute_hash_before("d1", seed, ["a", "b", "c"]),
        )

    def test_integer_ids_sort_as_strings(self):
        expected = hashlib.sha256(b"7:s:10,2,3").hexdigest()
        self.assertEqual(compute_hash_before(7, "s", [3, 10, 2]), expected)

    def test_hash_after_keeps_pick_order(self):
        expected = hashlib.sha256(b"b,a").hexdigest()
        self.assertEqual(compute_hash_after(["b", "a"]), expected)
        self.assertNotEqual(compute_hash_after(["a", "b"]), expected)


class PopulationTests(unittest.TestCase):
    def test_filters_excluded_and_incorrect(self):
        entries = [
            FakeEntry("a", is_correct=True),
            FakeEntry("b", entry_status="EXCLUDED", is_correct=True),
            FakeEntry("c", is_correct=False),
            FakeEntry("d", is_correct=None),
        ]
        self.assertEqual(
            [e.id for e in eligible_population(entries)], ["a", "c", "d"]
        )
        self.assertEqual(
            [e.id for e in eligible_population(entries, require_correct=True)], ["a"]
        )

    def test_duplicate_ids_rejected(self):
        with self.assertRaises(ValueError):
            eligible_population([FakeEntry("a"), FakeEntry("a")])

    def test_pick_random_unique_without_replacement(self):
        items = list(range(20))
        picked = pick_random_unique(items, 20, random.Random(3))
        self.assertEqual(sorted(picked), items)
        self.assertEqual(items, list(range(20)))


class SelectWinnersTests(unittest.TestCase):
    def test_exact_population_picks_everyone(self):
        entries = make_entries(5)
        result = select_winners(entries, 3, 2, draw_id=1, rng=random.Random(11))

        self.assertEqual(len(result.picks), 5)
        self.assertEqual({e.id for e in result.entries}, {e.id for e in entries})
        self.assertEqual([p.rank for p in result.picks], [1, 2, 3, 4, 5])
        self.assertEqual(
            [p.winner_type for p in result.picks],
            [WinnerType.WINNER] * 3 + [WinnerType.ALTERNATE] * 2,
        )
        self.assertEqual(result.population_size, 5)

    def test_pick_order_follows_rng(self):
        entries = make_entries(5)
        first = select_winners(entries, 3, 2, draw_id=1, rng=random.Random(5))
        again = select_winners(entries, 3, 2, draw_id=1, rng=random.Random(5))
        self.assertEqual(
            [e.id for e in first.entries], [e.id for e in again.entries]
        )
        self.assertEqual(
            first.audit.hash_after, compute_hash_after(e.id for e in first.entries)
        )

    def test_insufficient_population(self):
        with self.assertRaises(InsufficientEntriesError) as ctx:
            select_winners(make_entries(4), 3, 2, draw_id=1)
        self.assertEqual(ctx.exception.required, 5)
        self.assertEqual(ctx.exception.available, 4)

    def test_empty_population(self):
        with self.assertRaises(InsufficientEntriesError):
            select_winners([], 1, draw_id=1)

    def test_require_correct_shrinks_population(self):
        entries = [FakeEntry("a", is_correct=True), FakeEntry("b", is_correct=False)]
        result = select_winners(entries, 1, draw_id=9, require_correct=True)
        self.assertEqual(result.entries[0].id, "a")
        with self.assertRaises(InsufficientEntriesError):
            select_winners(entries, 2, draw_id=9, require_correct=True)

    def test_audit_uses_given_seed(self):
        entries = make_entries(3)
        result = select_winners(entries, 1, draw_id="d", seed="cafe")
        self.assertEqual(result.audit.seed, "cafe")
        self.assertEqual(
            result.audit.hash_before, compute_hash_before("d", "cafe", ["e0", "e1", "e2"])
        )

    def test_fresh_seed_is_hex(self):
        result = select_winners(make_entries(2), 1, draw_id=1)
        self.assertEqual(len(result.audit.seed), 16)
        int(result.audit.seed, 16)

    def test_invalid_counts(self):
        with self.assertRaises(ValueError):
            select_winners(make_entries(2), 0, draw_id=1)
        with self.assertRaises(ValueError):
            select_winners(make_entries(2), 1, -1, draw_id=1)


if __name__ == "__main__":
    unittest.main()
