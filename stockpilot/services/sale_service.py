"""Point-of-sale flow: build a cart and submit it as one sale."""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from .app_store import AppStore
from .catalog_service import CatalogService, require_store
from .submitter import IdempotentSubmitter
from ..api.stockpilot_client import StockPilotClient
from ..middleware.form_validator import FormValidator
from ..middleware.schemas import sale_schema
from ..models.line_item import LineItem
from ..models.product import index_variants
from ..models.submission import SubmissionResult, SubmissionState
from ..utils.logger import get_submit_logger
from ..utils.notifier import Notifier
from ..utils.reference import generate_reference

CENT = Decimal("0.01")


def money(value: Decimal) -> float:
    """Amount as the API expects it: a JSON number rounded to cents."""
    return float(value.quantize(CENT))


class SaleComposer:
    """
    Cart, customer details and payment method of one sale.

    Every setter counts as a payload edit: after a successful submit the
    next edit starts a new sale with a new idempotency token.
    """

    def __init__(
        self,
        client: StockPilotClient,
        app_store: AppStore,
        catalog: CatalogService,
        notifier: Optional[Notifier] = None,
        token: Optional[str] = None,
    ):
        self.client = client
        self.app_store = app_store
        self.catalog = catalog
        self.logger = get_submit_logger()

        self._quantities: Dict[str, Any] = {}
        self.customer_name = ""
        self.customer_phone = ""
        self.customer_email = ""
        self.payment_method = ""
        self._reference: Optional[tuple] = None

        self.submitter = IdempotentSubmitter(
            self._send,
            name="sale",
            validator=FormValidator(sale_schema()),
            notifier=notifier,
            on_success=self._after_success,
            token=token,
        )

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def set_quantity(self, variant_id: str, quantity: Any) -> None:
        """Put ``quantity`` of a variant in the cart; zero or less removes it."""
        self.submitter.edit()
        if isinstance(quantity, int) and not isinstance(quantity, bool) and quantity <= 0:
            self._quantities.pop(variant_id, None)
        elif quantity in (None, ""):
            self._quantities.pop(variant_id, None)
        else:
            self._quantities[variant_id] = quantity

    def set_customer_name(self, value: str) -> None:
        self.submitter.edit()
        self.customer_name = value

    def set_customer_phone(self, value: str) -> None:
        self.submitter.edit()
        self.customer_phone = value

    def set_customer_email(self, value: str) -> None:
        self.submitter.edit()
        self.customer_email = value

    def set_payment_method(self, value: str) -> None:
        self.submitter.edit()
        self.payment_method = value

    def reset(self) -> None:
        """Empty the form and start a new sale."""
        self._clear()
        self.submitter.reset()

    def _clear(self) -> None:
        self._quantities = {}
        self.customer_name = ""
        self.customer_phone = ""
        self.customer_email = ""
        self.payment_method = ""

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def line_items(self) -> List[LineItem]:
        variants = index_variants(self.catalog.products) if self._quantities else {}
        items = []
        for variant_id, quantity in self._quantities.items():
            ref = variants.get(variant_id)
            items.append(LineItem(
                reference_id=variant_id,
                quantity=quantity,
                unit_price=ref.variant.final_price if ref else None,
                discount=ref.variant.discount if ref else Decimal("0"),
                label=f"{ref.product_name} / {ref.variant.name}" if ref else variant_id,
            ))
        return items

    def total_items(self) -> int:
        return sum(q for q in self._quantities.values() if isinstance(q, int))

    def total(self, items: Optional[List[LineItem]] = None) -> Decimal:
        items = self.line_items() if items is None else items
        return sum((item.subtotal for item in items), Decimal("0"))

    @property
    def state(self) -> SubmissionState:
        return self.submitter.state

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def form(self, items: List[LineItem]) -> Dict[str, Any]:
        return {
            "customer": {
                "name": self.customer_name,
                "phone": self.customer_phone,
                "email": self.customer_email,
            },
            "payment_method": self.payment_method,
            "items": [item.to_dict() for item in items],
        }

    def payload(self, items: List[LineItem]) -> Dict[str, Any]:
        store = require_store(self.app_store)
        user = self.app_store.user
        return {
            "store_id": store.store_id,
            "business_id": store.business_id,
            "created_by": user.id if user else "",
            "total_amount": money(self.total(items)),
            "payment_method": self.payment_method,
            "customer": {
                "name": self.customer_name.strip(),
                "email": self.customer_email.strip(),
                "phone": self.customer_phone.strip(),
            },
            "items": [
                {
                    "variant_id": item.reference_id,
                    "quantity": item.quantity,
                    "unit_price": money(item.unit_price) if item.unit_price is not None else None,
                    "discount": money(item.discount),
                }
                for item in items
            ],
        }

    def submit(self) -> SubmissionResult:
        items = self.line_items()
        form = self.form(items)
        if not items:
            # Nothing to price; let the validator report the empty cart.
            return self.submitter.submit({}, form=form)
        return self.submitter.submit(self.payload(items), form=form)

    def _reference_for(self, token: str) -> str:
        # One business reference per intent, reused by retries.
        if not self._reference or self._reference[0] != token:
            self._reference = (token, generate_reference("SALE"))
        return self._reference[1]

    def _send(self, token: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = dict(payload, reference=self._reference_for(token))
        self.logger.debug(f"Sale {body['reference']}: {len(body['items'])} line(s), total {body['total_amount']}")
        return self.client.create_sale(token, body)

    def _after_success(self, response: Dict[str, Any]) -> None:
        # Cleared without an edit: the token stays until the user types again.
        self._clear()
        self.catalog.refresh_quietly(response)
