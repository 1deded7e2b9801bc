"""Signed-in user, store list and active store selection."""

from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any, Tuple


@dataclass(frozen=True)
class User:
    """The authenticated dashboard user."""

    id: str
    name: str
    email: str
    role: str = ""
    business_id: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        name = data.get("name") or " ".join(
            part for part in (data.get("first_name"), data.get("last_name")) if part
        )
        return cls(
            id=str(data["id"]),
            name=name,
            email=data.get("email", ""),
            role=data.get("role", ""),
            business_id=str(data.get("business_id") or data.get("businessId") or ""),
        )


@dataclass(frozen=True)
class StoreSummary:
    """A store of the user's business."""

    store_id: str
    store_name: str
    business_id: str
    business_name: str = ""
    location: str = ""
    currency: str = "USD"
    is_default: bool = False
    address: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoreSummary":
        business = data.get("business") or {}
        return cls(
            store_id=str(data.get("store_id") or data.get("storeId") or data["id"]),
            store_name=data.get("store_name") or data.get("storeName") or data.get("name", ""),
            business_id=str(
                data.get("business_id") or data.get("businessId") or business.get("id", "")
            ),
            business_name=data.get("business_name") or data.get("businessName") or business.get("name", ""),
            location=data.get("location", "") or "",
            currency=data.get("currency") or "USD",
            is_default=bool(data.get("is_default", data.get("isDefault", False))),
            address=data.get("address", "") or "",
        )


@dataclass(frozen=True)
class AppState:
    """
    Process-wide session state.

    Instances are immutable; the app store swaps in a new ``AppState`` on
    every change so readers holding an old reference never see a partial
    update.
    """

    user: Optional[User] = None
    stores: Tuple[StoreSummary, ...] = field(default_factory=tuple)
    active_store: Optional[StoreSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": asdict(self.user) if self.user else None,
            "stores": [asdict(s) for s in self.stores],
            "active_store": asdict(self.active_store) if self.active_store else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppState":
        user = data.get("user")
        active = data.get("active_store")
        return cls(
            user=User(**user) if user else None,
            stores=tuple(StoreSummary(**s) for s in data.get("stores", [])),
            active_store=StoreSummary(**active) if active else None,
        )


@dataclass(frozen=True)
class StoreUser:
    """A member of a store's staff."""

    id: str
    name: str
    email: str
    role: str = "staff"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoreUser":
        user = data.get("user") if isinstance(data.get("user"), dict) else {}
        return cls(
            id=str(data.get("user_id") or data.get("userId") or user.get("id") or data["id"]),
            name=data.get("name") or user.get("name", ""),
            email=data.get("email") or user.get("email", ""),
            role=data.get("role") or "staff",
        )
