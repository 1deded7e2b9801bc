"""Product drafts: a new product as entered, before validation."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any, List


@dataclass
class VariantDraft:
    name: str = ""
    sku: str = ""
    price: Any = ""
    quantity: Any = ""
    low_quantity_threshold: Any = ""
    reserved: Any = 0
    image: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "VariantDraft":
        image = data.get("image")
        return cls(
            name=data.get("name", ""),
            sku=data.get("sku", ""),
            price=data.get("price", ""),
            quantity=data.get("quantity", ""),
            low_quantity_threshold=data.get("low_quantity_threshold", ""),
            reserved=data.get("reserved", 0),
            image=_resolve(image, base_dir),
        )


@dataclass
class ProductDraft:
    """A product being created, with the files to upload."""

    name: str = ""
    brand: str = ""
    description: str = ""
    category: str = ""
    tags: List[str] = field(default_factory=list)
    thumbnail: Optional[Path] = None
    variants: List[VariantDraft] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "ProductDraft":
        """
        Build a draft from parsed YAML/JSON.

        Relative image paths are resolved against ``base_dir`` (the
        directory of the draft file).
        """
        return cls(
            name=data.get("name", ""),
            brand=data.get("brand", ""),
            description=data.get("description", ""),
            category=data.get("category", ""),
            tags=list(data.get("tags") or []),
            thumbnail=_resolve(data.get("thumbnail"), base_dir),
            variants=[VariantDraft.from_dict(v, base_dir) for v in data.get("variants") or []],
        )

    def to_form(self) -> Dict[str, Any]:
        """Field layout checked by the product form schema."""
        return {
            "name": self.name,
            "brand": self.brand,
            "description": self.description,
            "categoryType": self.category,
            "thumbnail": str(self.thumbnail) if self.thumbnail else "",
            "productVariants": [
                {
                    "name": v.name,
                    "sku": v.sku,
                    "price": v.price,
                    "image": str(v.image) if v.image else "",
                    "inventory": {
                        "quantity": v.quantity,
                        "lowQuantityThreshold": v.low_quantity_threshold,
                        "reserved": v.reserved,
                    },
                }
                for v in self.variants
            ],
        }

    def variants_payload(self) -> List[Dict[str, Any]]:
        """Variant metadata sent next to the uploaded images."""
        return [
            {
                "name": v.name,
                "sku": v.sku,
                "stock": v.quantity,
                "price": v.price,
                "inventory": {
                    "lowStockQuantity": v.low_quantity_threshold,
                    "reserved": v.reserved,
                    "quantity": v.quantity,
                },
            }
            for v in self.variants
        ]


def _resolve(value: Optional[str], base_dir: Optional[Path]) -> Optional[Path]:
    if not value:
        return None
    path = Path(value).expanduser()
    if base_dir is not None and not path.is_absolute():
        path = base_dir / path
    return path
