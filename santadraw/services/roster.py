from __future__ import annotations

from typing import Sequence

from ..errors import ValidationError


def clean_name(raw: str | None, roster: Sequence[str]) -> str:
    """
    Trimmed name, or ValidationError if it is blank or already on the roster.
    Matching is exact and case-sensitive.
    """
    name = (raw or "").strip()
    if not name:
        raise ValidationError("Name is required.")
    if name in roster:
        raise ValidationError(f"{name} is already registered.")
    return name
