"""
Goods-Receipt Module Models.

Result types returned by ``GoodsReceiptService`` and the JSON-safe
payload conversion used at the persistence boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from receipt_kernel.domain.dtos import GoodsReceipt, ValidationResult
from receipt_kernel.exceptions import ReceiptEngineError


@dataclass(frozen=True)
class EditResult:
    """
    Outcome of a mutating service call.

    Contract:
        ``document`` is the new snapshot when accepted, or the unchanged
        input when rejected.  ``failure`` holds the reason as an unraised
        typed exception; ``warnings`` are advisory messages produced by the
        edit (e.g. allocations that no longer fit a reduced quantity).
    """

    document: GoodsReceipt
    failure: ReceiptEngineError | None = None
    warnings: tuple[str, ...] = ()

    @classmethod
    def ok(cls, document: GoodsReceipt, warnings: tuple[str, ...] = ()) -> EditResult:
        return cls(document=document, warnings=warnings)

    @classmethod
    def rejected(cls, document: GoodsReceipt, failure: ReceiptEngineError) -> EditResult:
        return cls(document=document, failure=failure)

    @property
    def accepted(self) -> bool:
        return self.failure is None

    @property
    def error(self) -> str | None:
        return str(self.failure) if self.failure is not None else None

    @property
    def error_code(self) -> str | None:
        return self.failure.code if self.failure is not None else None

    def raise_for_error(self) -> None:
        """Raise the typed exception when the edit was rejected."""
        if self.failure is not None:
            raise self.failure


@dataclass(frozen=True)
class SubmissionResult:
    """
    Outcome of ``GoodsReceiptService.submit``.

    ``payload`` is only present when validation passed.
    """

    document: GoodsReceipt
    validation: ValidationResult = field(default_factory=ValidationResult)
    payload: dict[str, Any] | None = None
    failure: ReceiptEngineError | None = None

    @property
    def is_success(self) -> bool:
        return self.failure is None and self.payload is not None

    @property
    def errors(self) -> tuple[str, ...]:
        return self.validation.errors

    @property
    def warnings(self) -> tuple[str, ...]:
        return self.validation.warnings

    @property
    def error_code(self) -> str | None:
        return self.failure.code if self.failure is not None else None

    def raise_for_error(self) -> None:
        if self.failure is not None:
            raise self.failure


def to_payload(value: Any) -> Any:
    """
    Convert DTOs into JSON-serializable structures.

    Decimals become strings, dates ISO strings, enums their value, and
    dataclasses dicts of their fields.  Private fields are skipped.
    """
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_payload(getattr(value, f.name))
            for f in fields(value)
            if not f.name.startswith("_")
        }
    if isinstance(value, dict):
        return {str(k): to_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_payload(v) for v in value]
    raise TypeError(f"Cannot convert {type(value).__name__} to payload")
