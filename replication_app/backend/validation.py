"""
Field-level validation for model records.

Records collect problems in an :class:`Errors` container rather than
raising, so that a failed save can be inspected by the caller.  Each
problem is a :class:`ValidationError` pairing the offending field with
a human readable message.  The ``validate_*`` helpers implement the
individual rules used by the models and append to a record's errors
when a rule is violated.
"""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from numbers import Real
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Union


class ValidationError(NamedTuple):
    """A single (field, message) validation failure."""

    field: str
    message: str


class Errors:
    """Ordered collection of validation failures for one record."""

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    def add(self, field: str, message: str) -> None:
        self._items.append(ValidationError(field, message))

    def clear(self) -> None:
        self._items.clear()

    @property
    def count(self) -> int:
        return len(self._items)

    def first(self) -> Optional[ValidationError]:
        return self._items[0] if self._items else None

    def __getitem__(self, field: str) -> List[str]:
        """Return the messages recorded for ``field`` (empty if none)."""
        return [item.message for item in self._items if item.field == field]

    def __iter__(self) -> Iterator[ValidationError]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def full_messages(self) -> List[str]:
        return [f"{item.field} {item.message}" for item in self._items]

    def as_list(self) -> List[Dict[str, str]]:
        return [{'field': item.field, 'message': item.message} for item in self._items]

    def __repr__(self) -> str:
        return f"Errors({self._items!r})"


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _to_number(value: Any) -> Optional[Union[int, float, Decimal]]:
    """Coerce ``value`` to a number, returning ``None`` if it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, Real):
        return value if math.isfinite(value) else None  # type: ignore[return-value]
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
        return number if number.is_finite() else None
    return None


def _is_integral(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_number(value: Any) -> bool:
    """True for finite numbers and numeric strings, never for booleans."""
    return _to_number(value) is not None


def validate_presence(record: Any, field: str) -> None:
    if _is_blank(getattr(record, field, None)):
        record.errors.add(field, "can't be blank")


def validate_numericality(
    record: Any,
    field: str,
    only_integer: bool = False,
    greater_than: Optional[float] = None,
    less_than: Optional[float] = None,
    allow_none: bool = True,
) -> None:
    """Check that ``field`` holds a number within the given bounds.

    A value that is not a number at all yields ``is not a number``.  When
    ``only_integer`` is set, a non-integral value is reported once and
    the bound checks are skipped for it.
    """
    raw = getattr(record, field, None)
    if raw is None:
        if not allow_none:
            record.errors.add(field, "can't be blank")
        return
    number = _to_number(raw)
    if number is None:
        record.errors.add(field, "is not a number")
        return
    if only_integer and not _is_integral(number):
        record.errors.add(field, "must be an integer")
        return
    if greater_than is not None and not number > greater_than:
        record.errors.add(field, f"must be greater than {greater_than:g}")
    if less_than is not None and not number < less_than:
        record.errors.add(field, f"must be less than {less_than:g}")
