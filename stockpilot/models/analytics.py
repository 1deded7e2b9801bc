"""Dashboard figures of the active store."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Any

from .product import to_decimal


@dataclass(frozen=True)
class InventoryKPI:
    """Stock totals shown on the overview."""

    total_items: int = 0
    low_stock_count: int = 0
    out_of_stock_count: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InventoryKPI":
        totals = data.get("totals") or data
        return cls(
            total_items=int(totals.get("total_items") or 0),
            low_stock_count=int(totals.get("low_stock_count") or 0),
            out_of_stock_count=int(totals.get("out_of_stock_count") or 0),
        )


@dataclass(frozen=True)
class TopProduct:
    """A best seller of the current month."""

    name: str
    units_sold: int
    revenue: Decimal

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TopProduct":
        return cls(
            name=data.get("name", ""),
            units_sold=int(data.get("sales") or 0),
            revenue=to_decimal(data.get("revenue")) or Decimal("0"),
        )
