"""Line items of sale, restock and return submissions."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Dict, Any, List


@dataclass
class LineItem:
    """
    One line of a pending submission.

    ``reference_id`` points at a product variant (sales, restocks) or at a
    sale item (returns). Values are kept as entered; the form validator is
    what rejects a non-positive quantity or a duplicate reference.
    """

    reference_id: str
    quantity: Any
    unit_price: Optional[Decimal] = None
    discount: Decimal = Decimal("0")
    reason: str = ""
    resolution: str = ""
    exchanges: List[Dict[str, Any]] = field(default_factory=list)
    label: str = ""

    @property
    def subtotal(self) -> Decimal:
        """Quantity times unit price (zero when either is missing)."""
        if self.unit_price is None or not isinstance(self.quantity, int):
            return Decimal("0")
        return self.unit_price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        """Plain representation consumed by the form validator."""
        return {
            "reference_id": self.reference_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "discount": self.discount,
            "reason": self.reason,
            "resolution": self.resolution,
            "exchanges": [dict(e) for e in self.exchanges],
        }
