"""General-purpose helpers for deterministic record processing."""

from __future__ import annotations

import json
import unicodedata
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel


def fold_diacritics(text: str) -> str:
    """Remove diacritics by decomposing unicode characters."""

    normalized = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def structural_key(value: Any) -> str:
    """Return a canonical JSON key so structurally equal values compare equal."""

    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    return json.dumps(value, sort_keys=True, default=str, ensure_ascii=False)


__all__ = [
    "fold_diacritics",
    "ensure_utc",
    "utc_now",
    "structural_key",
]
