"""Sale lines, return policy, return records and store credits."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any

from .product import to_decimal

REFUND = "REFUND"
EXCHANGE = "EXCHANGE"
STORE_CREDIT = "STORE_CREDIT"
RESOLUTIONS = (REFUND, EXCHANGE, STORE_CREDIT)

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
RETURN_STATUSES = (PENDING, APPROVED, REJECTED, "refunded", "exchanged", "credited")


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class SaleItem:
    """A purchased line of a completed sale."""

    id: str
    product_name: str
    variant_name: str
    variant_id: Optional[str]
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    purchased_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SaleItem":
        """Create instance from an API sale item."""
        variant = data.get("productVariant") or data.get("product_variant") or {}
        unit_price = to_decimal(data.get("unit_price", data.get("unitPrice"))) or Decimal("0")
        quantity = int(data.get("quantity", 0))
        total = to_decimal(data.get("total_price", data.get("totalPrice")))

        return cls(
            id=str(data["id"]),
            product_name=data.get("productName") or variant.get("product_name", ""),
            variant_name=data.get("variantName") or variant.get("name", ""),
            variant_id=variant.get("id"),
            quantity=quantity,
            unit_price=unit_price,
            total_price=total if total is not None else unit_price * quantity,
            purchased_at=_parse_datetime(
                data.get("purchasedAt") or data.get("created_at") or data.get("createdAt")
            ),
        )


@dataclass(frozen=True)
class ReturnPolicy:
    """A store's return policy."""

    days_allowed: int = 30
    allow_refund: bool = True
    allow_exchange: bool = True
    allow_store_credit: bool = True
    require_receipt: bool = True
    restocking_fee: Decimal = Decimal("0")
    max_items_per_return: int = 5
    notes: str = ""

    def allows(self, resolution: str) -> bool:
        """Whether ``resolution`` (REFUND, EXCHANGE, STORE_CREDIT) is permitted."""
        return {
            REFUND: self.allow_refund,
            EXCHANGE: self.allow_exchange,
            STORE_CREDIT: self.allow_store_credit,
        }.get(resolution, False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReturnPolicy":
        """Create instance from the API's snake_case policy object."""
        defaults = cls()
        return cls(
            days_allowed=int(data.get("days_allowed", defaults.days_allowed)),
            allow_refund=bool(data.get("allow_refund", defaults.allow_refund)),
            allow_exchange=bool(data.get("allow_exchange", defaults.allow_exchange)),
            allow_store_credit=bool(data.get("allow_store_credit", defaults.allow_store_credit)),
            require_receipt=bool(data.get("require_receipt", defaults.require_receipt)),
            restocking_fee=to_decimal(data.get("restocking_fee")) or Decimal("0"),
            max_items_per_return=int(data.get("max_items_per_return", defaults.max_items_per_return)),
            notes=data.get("notes") or "",
        )

    def to_payload(self) -> Dict[str, Any]:
        """camelCase body of the policy create and update endpoints."""
        return {
            "daysAllowed": self.days_allowed,
            "allowRefund": self.allow_refund,
            "allowExchange": self.allow_exchange,
            "allowStoreCredit": self.allow_store_credit,
            "requireReceipt": self.require_receipt,
            "restockingFee": float(self.restocking_fee),
            "maxItemsPerReturn": self.max_items_per_return,
            "notes": self.notes,
        }


@dataclass
class ReturnRecord:
    """A return waiting for, or past, manager review."""

    id: str
    sale_item_id: str
    item_name: str
    reason: str
    resolution: str
    status: str
    quantity: int
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReturnRecord":
        sale_item = data.get("saleItem") or data.get("sale_item") or {}
        variant = sale_item.get("productVariant") or sale_item.get("product_variant") or {}
        return cls(
            id=str(data["id"]),
            sale_item_id=str(data.get("sale_item_id") or data.get("saleItemId") or sale_item.get("id", "")),
            item_name=variant.get("name") or sale_item.get("name", ""),
            reason=data.get("reason") or "",
            resolution=str(data.get("resolution") or "").upper(),
            status=str(data.get("status") or PENDING).lower(),
            quantity=int(data.get("quantity", 0)),
            created_at=_parse_datetime(data.get("created_at") or data.get("createdAt")),
        )


@dataclass
class StoreCredit:
    """Credit issued to a customer for a return."""

    id: str
    customer_id: str
    return_id: str
    amount: Decimal
    used_amount: Decimal
    status: str
    created_at: Optional[datetime] = None

    @property
    def balance(self) -> Decimal:
        return self.amount - self.used_amount

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoreCredit":
        return cls(
            id=str(data["id"]),
            customer_id=str(data.get("customer_id") or data.get("customerId") or ""),
            return_id=str(data.get("return_id") or data.get("returnId") or ""),
            amount=to_decimal(data.get("amount")) or Decimal("0"),
            used_amount=to_decimal(data.get("used_amount", data.get("usedAmount"))) or Decimal("0"),
            status=data.get("status") or "",
            created_at=_parse_datetime(data.get("created_at") or data.get("createdAt")),
        )
