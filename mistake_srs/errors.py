"""
Error taxonomy for the SRS engine.

pymongo errors on write paths are wrapped into CommitFailure or
ProjectionFailure, with the original exception kept as ``__cause__``.
Errors from plain reads change no state and propagate unwrapped.
"""

from __future__ import annotations

from typing import Optional


class SrsError(Exception):
    """Base class for every error raised by the engine."""


class NotFound(SrsError):
    """A referenced card or attempt does not exist."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class ValidationError(SrsError):
    """Malformed input for a single entry or call."""

    def __init__(self, message: str, index: Optional[int] = None, field: Optional[str] = None):
        self.index = index
        self.field = field
        super().__init__(message)


class CardNotActive(ValidationError):
    """Reviews are refused for archived or graduated cards until reactivated."""

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(f"Card is archived and cannot be reviewed: {card_id}", field="card_id")


class CommitFailure(SrsError):
    """An atomic multi-document write did not apply. Nothing was written."""


class ProjectionFailure(SrsError):
    """The mistake-index projection could not be written."""
