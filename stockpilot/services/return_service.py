"""Customer returns.

:class:`ReturnComposer` picks lines of a past sale and resolves them per
the store policy; :class:`ReturnDesk` is where a manager reviews them.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from .app_store import AppStore
from .catalog_service import require_store
from .submitter import IdempotentSubmitter
from ..api.stockpilot_client import StockPilotClient
from ..middleware.form_validator import FormValidator
from ..middleware.schemas import return_policy_schema, return_schema
from ..models.line_item import LineItem
from ..models.returns import APPROVED, EXCHANGE, REJECTED, ReturnPolicy, ReturnRecord, SaleItem, StoreCredit
from ..models.submission import SubmissionResult, SubmissionState
from ..utils.exceptions import BaseAppException, NotFoundError, PolicyViolationError
from ..utils.logger import get_submit_logger
from ..utils.notifier import Notifier


class ReturnComposer:
    """Return lines of one sale, checked against the store's return policy."""

    def __init__(
        self,
        client: StockPilotClient,
        app_store: AppStore,
        notifier: Optional[Notifier] = None,
        token: Optional[str] = None,
    ):
        self.client = client
        self.app_store = app_store
        self.logger = get_submit_logger()

        self.policy: Optional[ReturnPolicy] = None
        self.sale_code = ""
        self.sale_items: List[SaleItem] = []
        self._items: List[LineItem] = []

        self.submitter = IdempotentSubmitter(
            self._send,
            name="return",
            validator=FormValidator(return_schema()),
            notifier=notifier,
            on_success=self._after_success,
            token=token,
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_policy(self) -> ReturnPolicy:
        store = require_store(self.app_store)
        self.policy = self.client.get_return_policy(store.store_id)
        self._rebuild_validator()
        return self.policy

    def load_sale(self, sale_code: str) -> List[SaleItem]:
        """Look up the sale being returned; lines picked for another sale are dropped."""
        self.submitter.edit()
        sale_code = sale_code.strip()
        if sale_code != self.sale_code:
            self._items = []
        self.sale_code = sale_code
        self.sale_items = self.client.get_sale_items(sale_code)
        self.logger.info(f"Loaded {len(self.sale_items)} line(s) of sale {sale_code} for return")
        self._rebuild_validator()
        return self.sale_items

    def _rebuild_validator(self) -> None:
        purchased = {item.id: item.quantity for item in self.sale_items}
        self.submitter.validator = FormValidator(return_schema(self.policy, purchased))

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    @property
    def items(self) -> List[LineItem]:
        return list(self._items)

    @property
    def state(self) -> SubmissionState:
        return self.submitter.state

    def add_item(self, sale_item_id: str, quantity: int = 1) -> LineItem:
        """
        Add a sale line to the return.

        Raises:
            PolicyViolationError: Policy item limit reached, the line is
                already on the return, or it is not part of the sale
        """
        if self.policy and len(self._items) >= self.policy.max_items_per_return:
            raise PolicyViolationError(f"Max {self.policy.max_items_per_return} items can be returned.")
        if any(item.reference_id == sale_item_id for item in self._items):
            raise PolicyViolationError("This sale item is already on the return")
        sale_item = next((s for s in self.sale_items if s.id == sale_item_id), None)
        if sale_item is None:
            raise PolicyViolationError(f"Sale item {sale_item_id} is not part of sale {self.sale_code or '?'}")

        self.submitter.edit()
        item = LineItem(
            reference_id=sale_item_id,
            quantity=quantity,
            unit_price=sale_item.unit_price,
            label=f"{sale_item.product_name} / {sale_item.variant_name}",
        )
        self._items.append(item)
        return item

    def remove_item(self, sale_item_id: str) -> None:
        self.submitter.edit()
        self._items = [item for item in self._items if item.reference_id != sale_item_id]

    def set_reason(self, index: int, reason: str) -> None:
        self.submitter.edit()
        self._items[index].reason = reason

    def set_quantity(self, index: int, quantity: Any) -> None:
        self.submitter.edit()
        self._items[index].quantity = quantity

    def set_resolution(self, index: int, resolution: str) -> None:
        """
        Choose REFUND, EXCHANGE or STORE_CREDIT for a line.

        Raises:
            PolicyViolationError: The store's policy forbids ``resolution``
        """
        resolution = resolution.strip().upper()
        if self.policy and not self.policy.allows(resolution):
            raise PolicyViolationError(
                f"{resolution.replace('_', ' ').title()} is not allowed by the store policy"
            )
        self.submitter.edit()
        item = self._items[index]
        item.resolution = resolution
        if resolution != EXCHANGE:
            item.exchanges = []

    def set_exchange(self, index: int, variant_id: str, quantity: int = 1) -> None:
        """
        Hand out ``variant_id`` in exchange for a line.

        Raises:
            PolicyViolationError: The line is not resolved as an exchange
        """
        item = self._items[index]
        if item.resolution != EXCHANGE:
            raise PolicyViolationError("Only lines resolved as EXCHANGE can carry exchange items")
        self.submitter.edit()
        item.exchanges = [{"newProductVariantId": variant_id, "quantity": quantity}]

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def form(self) -> Dict[str, Any]:
        return {"sale_code": self.sale_code, "items": [item.to_dict() for item in self._items]}

    def payload(self) -> Dict[str, Any]:
        store = require_store(self.app_store)
        user = self.app_store.user
        return {
            "storeId": store.store_id,
            "saleCode": self.sale_code,
            "staffId": user.id if user else "",
            "items": [
                {
                    "saleItemId": item.reference_id,
                    "reason": item.reason,
                    "exchanges": [dict(e) for e in item.exchanges],
                    "quantity": item.quantity,
                    "resolution": item.resolution,
                }
                for item in self._items
            ],
        }

    def refund_estimate(self) -> Decimal:
        """Refund of the picked lines less the policy's restocking fee."""
        total = sum((item.subtotal for item in self._items), Decimal("0"))
        fee = self.policy.restocking_fee if self.policy else Decimal("0")
        return max(total - fee, Decimal("0")) if total else Decimal("0")

    def submit(self) -> SubmissionResult:
        payload = self.payload() if self._items else {}
        return self.submitter.submit(payload, form=self.form())

    def _send(self, token: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self.client.create_return(token, payload)
        if not response.get("message"):
            response = dict(response, message="Return created successfully")
        return response

    def _after_success(self, response: Dict[str, Any]) -> None:
        self._items = []


class ReturnDesk:
    """Manager side of returns: review queue, store credits and the policy."""

    def __init__(self, client: StockPilotClient, app_store: AppStore):
        self.client = client
        self.app_store = app_store
        self.logger = get_submit_logger()

    def returns(self, status: str = "all", search: str = "") -> List[ReturnRecord]:
        """Returns of the active store filtered by status and item name or reason."""
        store = require_store(self.app_store)
        needle = search.strip().lower()
        return [
            record for record in self.client.list_returns(store.store_id)
            if (status == "all" or record.status == status)
            and (not needle or needle in record.item_name.lower() or needle in record.reason.lower())
        ]

    def credits(self) -> List[StoreCredit]:
        """Store credits of the active store; empty when they cannot be loaded."""
        store = require_store(self.app_store)
        try:
            return self.client.list_store_credits(store.store_id)
        except BaseAppException as e:
            self.logger.warning(f"Could not load store credits for {store.store_id}: {e.message}")
            return []

    def review(self, return_ids: Sequence[str], approve: bool) -> Dict[str, Any]:
        """
        Approve or reject returns in one batch, signed by the current user.

        Raises:
            PolicyViolationError: No return selected
        """
        if not return_ids:
            raise PolicyViolationError("No returns selected")
        store = require_store(self.app_store)
        user = self.app_store.user
        response = self.client.review_returns(store.store_id, list(return_ids), approve, user.id if user else "")
        verdict = APPROVED if approve else REJECTED
        self.logger.info(f"{len(return_ids)} return(s) {verdict} in store {store.store_id}")
        return response

    def save_policy(self, policy: ReturnPolicy) -> ReturnPolicy:
        """
        Create the store's return policy, or update it when one exists.

        Raises:
            FormValidationError: Negative days or fee, bad item limit
        """
        FormValidator(return_policy_schema()).require_valid(policy.to_payload())
        store = require_store(self.app_store)
        try:
            self.client.get_return_policy(store.store_id)
        except NotFoundError:
            saved = self.client.create_return_policy(store.store_id, policy)
            self.logger.info(f"Created return policy for store {store.store_id}")
            return saved
        saved = self.client.update_return_policy(store.store_id, policy)
        self.logger.info(f"Updated return policy for store {store.store_id}")
        return saved
