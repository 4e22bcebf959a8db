"""
EngineConfig schema.

The runtime configuration artifact for the goods-receipt engines.  YAML
files are parsed into this frozen dataclass by ``receipt_config.loader``;
services and engines only ever see the dataclass.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class EngineConfig:
    """Validated, immutable engine configuration."""

    config_id: str = "goods-receipt-default"
    version: int = 1

    # Rounding
    money_places: int = 2
    quantity_places: int = 3

    # Validation
    free_quantity_warning_ratio: Decimal = Decimal("1")
    warn_future_receipt_date: bool = True
    warn_discount_exceeds_total: bool = True

    # Reconciliation
    manual_lines_first: bool = True
    skip_inactive_po_lines: bool = True

    checksum: str = ""
