"""Exceptions raised by the domain model and persistence layers."""

from __future__ import annotations

from typing import Any


class InvalidEffectSizeError(ValueError):
    """Raised when an effect size is set for an unknown statistical test."""

    def __init__(self, test_type: Any) -> None:
        self.test_type = test_type
        super().__init__(f"Unknown effect size type: {test_type!r}")


class RecordInvalid(Exception):
    """Raised when an invalid record is written without a prior ``save``."""

    def __init__(self, record: Any) -> None:
        self.record = record
        messages = ', '.join(record.errors.full_messages()) or 'validation failed'
        super().__init__(f"{type(record).__name__} is invalid: {messages}")
