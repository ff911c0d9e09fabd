"""Configuration errors raised before any row is enriched."""
from __future__ import annotations

__all__ = [
    "MissingReferenceField",
    "ReferenceDataError",
]


class ReferenceDataError(ValueError):
    """Reference tables are internally inconsistent (bad configuration, not bad rows)."""

    def __init__(self, table: str, message: str):
        super().__init__(f"{table}: {message}")
        self.table = table
        self.detail = message


class MissingReferenceField(KeyError):
    """Raised when an expected field is missing from the reference registry."""

    def __init__(self, field_path: str):
        super().__init__(field_path)
        self.field_path = field_path

    def __str__(self) -> str:
        return f"missing required reference field: {self.field_path}"
