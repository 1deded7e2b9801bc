"""Catalog data models: products, their variants and inventory levels."""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Dict, Any, List


class StockStatus(str, Enum):
    """Stock classification shown next to products and variants."""

    IN_STOCK = "In Stock"
    LOW_STOCK = "Low Stock"
    OUT_OF_STOCK = "Out of Stock"


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first key present in ``data`` (the API mixes snake and camel case)."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert an API number or numeric string to ``Decimal``; ``None`` when blank."""
    if value is None or value == "":
        return None
    if isinstance(value, Decimal):
        return value
    try:
        # str() first so 0.1 does not become 0.1000000000000000055...
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Not a valid amount: {value!r}")


@dataclass
class Inventory:
    """Inventory level of one variant in one store."""

    quantity: int = 0
    low_stock_quantity: Optional[int] = None
    reserved: int = 0

    def __post_init__(self):
        if self.quantity < 0:
            raise ValueError("Quantity cannot be negative")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Inventory":
        data = data or {}
        threshold = _pick(data, "low_stock_quantity", "lowStockQuantity", "lowQuantityThreshold")
        return cls(
            quantity=int(_pick(data, "quantity", default=0)),
            low_stock_quantity=int(threshold) if threshold not in (None, "") else None,
            reserved=int(_pick(data, "reserved", default=0) or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quantity": self.quantity,
            "low_stock_quantity": self.low_stock_quantity,
            "reserved": self.reserved,
        }


@dataclass
class ProductVariant:
    """A sellable variant (size, colour, ...) of a product."""

    id: str
    name: str
    sku: str
    final_price: Decimal
    original_price: Optional[Decimal] = None
    discount: Decimal = Decimal("0")
    inventory: Inventory = field(default_factory=Inventory)
    image_url: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Variant id cannot be empty")
        if self.original_price is None:
            self.original_price = self.final_price

    @property
    def quantity(self) -> int:
        return self.inventory.quantity

    @property
    def low_stock_quantity(self) -> Optional[int]:
        return self.inventory.low_stock_quantity

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductVariant":
        """Create instance from an API variant object."""
        final_price = to_decimal(_pick(data, "finalPrice", "final_price", "price", default=0))
        discount = _pick(data, "discount", default=0)
        if isinstance(discount, dict):
            discount = discount.get("value", 0)

        return cls(
            id=str(data["id"]),
            name=_pick(data, "name", default=""),
            sku=_pick(data, "sku", default=""),
            final_price=final_price if final_price is not None else Decimal("0"),
            original_price=to_decimal(_pick(data, "originalPrice", "original_price")),
            discount=to_decimal(discount) or Decimal("0"),
            inventory=Inventory.from_dict(data.get("inventory")),
            image_url=_pick(data, "image_url", "imageUrl"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "final_price": str(self.final_price),
            "original_price": str(self.original_price),
            "discount": str(self.discount),
            "inventory": self.inventory.to_dict(),
            "image_url": self.image_url,
        }


@dataclass
class Product:
    """A catalog product with its variants."""

    id: str
    name: str
    brand: str = ""
    category: str = ""
    description: str = ""
    thumbnail: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    variants: List[ProductVariant] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        """Create instance from an API product object."""
        variants = _pick(data, "product_variants", "productVariants", "variants", default=[])
        return cls(
            id=str(data["id"]),
            name=_pick(data, "name", default=""),
            brand=_pick(data, "brand", default=""),
            category=_pick(data, "category_type", "categoryType", "category", default=""),
            description=_pick(data, "description", default=""),
            thumbnail=_pick(data, "thumbnail"),
            tags=list(_pick(data, "tags", default=[])),
            variants=[ProductVariant.from_dict(v) for v in variants],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "category": self.category,
            "description": self.description,
            "thumbnail": self.thumbnail,
            "tags": list(self.tags),
            "variants": [v.to_dict() for v in self.variants],
        }

    def find_variant(self, variant_id: str) -> Optional[ProductVariant]:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None


@dataclass
class LowStockItem:
    """A variant reported by the backend as low or out of stock."""

    variant_id: str
    product_name: str
    variant_name: str
    sku: str
    category: str
    stock: int
    status: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LowStockItem":
        return cls(
            variant_id=str(data.get("variant_id", "")),
            product_name=data.get("product_name", ""),
            variant_name=data.get("variant_name", ""),
            sku=data.get("sku", ""),
            category=data.get("category", ""),
            stock=int(data.get("stock", 0)),
            status=data.get("status", ""),
        )


@dataclass(frozen=True)
class VariantRef:
    """A variant together with its product's name, as shown in carts."""

    product_name: str
    variant: ProductVariant


def index_variants(products: List[Product]) -> Dict[str, VariantRef]:
    """Map variant id to the variant and the name of its product."""
    return {
        variant.id: VariantRef(product_name=product.name, variant=variant)
        for product in products
        for variant in product.variants
    }
