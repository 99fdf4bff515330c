"""Error taxonomy shared by the workflows, the publish pipeline, and the web app."""

from __future__ import annotations


class DrawError(Exception):
    """Base class for every client-visible giveaway draw failure."""


class ValidationError(DrawError, ValueError):
    """Malformed input: bad URL, missing required field, unknown enum value."""

    def __init__(self, message: str, *, details: object = None) -> None:
        super().__init__(message)
        self.details = details


class PlatformMismatchError(ValidationError):
    """A source binding targets a different platform than its draw."""


class PreconditionError(DrawError, ValueError):
    """A lifecycle guard failed; the caller must perform the missing step first."""


class InsufficientEntriesError(DrawError, ValueError):
    """Fewer eligible entries than winners plus alternates."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            f"Not enough eligible entries: {required} required, {available} available"
        )
        self.required = required
        self.available = available


class DrawNotFound(DrawError, LookupError):
    """No draw matches the requested id or public slug."""


class Unauthorized(DrawError, PermissionError):
    """The render callback presented a missing or wrong shared secret."""


class ExternalDependencyError(DrawError, RuntimeError):
    """Object storage or the render dispatcher could not be reached."""


__all__ = [
    "DrawError",
    "ValidationError",
    "PlatformMismatchError",
    "PreconditionError",
    "InsufficientEntriesError",
    "DrawNotFound",
    "Unauthorized",
    "ExternalDependencyError",
]
