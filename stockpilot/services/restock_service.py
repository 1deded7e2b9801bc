"""Restock flow: add received quantities to variants of the active store."""

from typing import Any, Dict, List, Optional

from .app_store import AppStore
from .catalog_service import CatalogService, require_store
from .projector import restock_progress, variant_status
from .submitter import IdempotentSubmitter
from ..api.stockpilot_client import StockPilotClient
from ..middleware.form_validator import FormValidator
from ..middleware.schemas import restock_schema
from ..models.line_item import LineItem
from ..models.product import index_variants
from ..models.submission import SubmissionResult, SubmissionState
from ..utils.notifier import Notifier
from ..utils.reference import generate_reference


class RestockComposer:
    """Restock quantities keyed by variant id, submitted as one batch."""

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
        self._quantities: Dict[str, Any] = {}
        self._reference: Optional[tuple] = None

        self.submitter = IdempotentSubmitter(
            self._send,
            name="restock",
            validator=FormValidator(restock_schema()),
            notifier=notifier,
            on_success=self._after_success,
            token=token,
        )

    def set_quantity(self, variant_id: str, quantity: Any) -> None:
        self.submitter.edit()
        if quantity in (None, "", 0):
            self._quantities.pop(variant_id, None)
        else:
            self._quantities[variant_id] = quantity

    def reset(self) -> None:
        self._quantities = {}
        self.submitter.reset()

    @property
    def state(self) -> SubmissionState:
        return self.submitter.state

    def line_items(self) -> List[LineItem]:
        return [LineItem(reference_id=vid, quantity=qty) for vid, qty in self._quantities.items()]

    def preview(self) -> List[Dict[str, Any]]:
        """Rows of the restock summary: current level, status and level after restock."""
        variants = index_variants(self.catalog.products)
        rows = []
        for item in self.line_items():
            ref = variants.get(item.reference_id)
            if ref is None:
                rows.append({"variant_id": item.reference_id, "label": item.reference_id,
                             "current": None, "after": None, "status": None, "progress": None})
                continue
            added = item.quantity if isinstance(item.quantity, int) else 0
            rows.append({
                "variant_id": item.reference_id,
                "label": f"{ref.product_name} / {ref.variant.name}",
                "current": ref.variant.quantity,
                "after": ref.variant.quantity + added,
                "status": variant_status(ref.variant),
                "progress": restock_progress(ref.variant),
            })
        return rows

    def payload(self, items: List[LineItem]) -> Dict[str, Any]:
        store = require_store(self.app_store)
        user = self.app_store.user
        return {
            "store_id": store.store_id,
            "business_id": store.business_id,
            "restocked_by": user.id if user else "",
            "variants": [
                {"variant_id": item.reference_id, "quantity": item.quantity}
                for item in items
            ],
        }

    def submit(self) -> SubmissionResult:
        items = self.line_items()
        form = {"items": [item.to_dict() for item in items]}
        payload = self.payload(items) if items else {}
        return self.submitter.submit(payload, form=form)

    def _send(self, token: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self._reference or self._reference[0] != token:
            self._reference = (token, generate_reference("RSTK"))
        body = dict(payload, reference=self._reference[1])
        return self.client.restock(token, body)

    def _after_success(self, response: Dict[str, Any]) -> None:
        self._quantities = {}
        self.catalog.refresh_quietly(response)
