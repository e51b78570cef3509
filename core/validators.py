"""
Shared validation helpers for Firefly Grove services.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from core.config import MAX_ID_LENGTH
from core.errors import ValidationIssue


def validate_required_text(value: str, field: str, max_len: int) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationIssue(f"{field} must be a non-empty string", field=field, error_type="required")
    if len(value) > max_len:
        raise ValidationIssue(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")


def validate_optional_text(value: Optional[str], field: str, max_len: int) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        raise ValidationIssue(f"{field} must be a string", field=field, error_type="invalid_type")
    if len(value) > max_len:
        raise ValidationIssue(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")


def validate_id(value: Any, field: str) -> None:
    validate_required_text(value, field, MAX_ID_LENGTH)


def validate_id_list(values: Optional[Sequence[str]], field: str, max_items: int) -> None:
    if not values or isinstance(values, str):
        raise ValidationIssue(f"{field} must be a non-empty list", field=field, error_type="required")
    if len(values) > max_items:
        raise ValidationIssue(f"{field} exceeds max items {max_items}", field=field, error_type="max_items")
    for item in values:
        if not isinstance(item, str) or not item.strip() or len(item) > MAX_ID_LENGTH:
            raise ValidationIssue(f"{field} must contain only ids", field=field, error_type="invalid_type")


def validate_bool_updates(updates: dict, allowed: Sequence[str], field: str) -> None:
    """Reject unknown keys and non-boolean values in a partial flag update."""
    if not isinstance(updates, dict):
        raise ValidationIssue(f"{field} must be an object", field=field, error_type="invalid_type")
    unknown = sorted(set(updates) - set(allowed))
    if unknown:
        raise ValidationIssue(
            f"{field} has unknown keys: {unknown}",
            field=field,
            error_type="invalid_key",
        )
    for key, value in updates.items():
        if not isinstance(value, bool):
            raise ValidationIssue(f"{key} must be a boolean", field=key, error_type="invalid_type")
