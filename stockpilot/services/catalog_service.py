"""Catalog screens: product lists, product details, creation and deletion.

Product lists are fetched for the active store and projected client-side.
Every fetch is tagged with a generation number that moves on whenever the
active store changes, so a response for the previous store is dropped
instead of overwriting the new store's list.
"""

import copy
import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .app_store import AppStore
from .projector import ProjectedView, ViewFilters, clamp_page, paginate, project
from .submitter import IdempotentSubmitter
from ..api.stockpilot_client import StockPilotClient
from ..middleware.form_validator import FormValidator, ValidationErrorMap, item_path
from ..middleware.schemas import product_schema
from ..models.draft import ProductDraft
from ..models.product import Product
from ..models.session import AppState, StoreSummary
from ..models.submission import SubmissionResult
from ..utils.config import get_config
from ..utils.exceptions import NoActiveStoreError
from ..utils.logger import get_catalog_logger
from ..utils.notifier import Notifier


def require_store(app_store: AppStore) -> StoreSummary:
    store = app_store.get_active_store()
    if store is None:
        raise NoActiveStoreError("No active store selected. Run `stockpilot use-store STORE_ID` first.")
    return store


def _files_exist(data: Mapping[str, Any], errors: ValidationErrorMap) -> None:
    thumbnail = data.get("thumbnail")
    if thumbnail and not Path(thumbnail).is_file():
        errors.set("thumbnail", f"Thumbnail file not found: {thumbnail}")
    for index, variant in enumerate(data.get("productVariants") or []):
        image = variant.get("image")
        if image and not Path(image).is_file():
            errors.set(item_path("productVariants", index, "image"), f"Image file not found: {image}")


def _draft_key(store_id: str, draft: ProductDraft) -> str:
    return json.dumps({"store": store_id, "form": draft.to_form(), "tags": draft.tags}, sort_keys=True, default=str)


class CatalogService:
    """Products of the active store."""

    def __init__(
        self,
        client: StockPilotClient,
        app_store: AppStore,
        notifier: Optional[Notifier] = None,
    ):
        self.client = client
        self.app_store = app_store
        self.notifier = notifier
        self.config = get_config()
        self.logger = get_catalog_logger()

        self._lock = threading.Lock()
        self._generation = 0
        self._store_id: Optional[str] = None
        self._products: List[Product] = []
        self._product_submitters: Dict[str, IdempotentSubmitter] = {}
        self._unsubscribe = app_store.subscribe(self._on_state_change)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _on_state_change(self, old: AppState, new: AppState) -> None:
        old_id = old.active_store.store_id if old.active_store else None
        new_id = new.active_store.store_id if new.active_store else None
        if old_id == new_id:
            return
        with self._lock:
            self._generation += 1
            self._store_id = None
            self._products = []
            self._product_submitters = {}
        self.logger.info(f"Active store changed ({old_id} -> {new_id}); catalog cache dropped")

    def refresh(self) -> bool:
        """
        Re-fetch the active store's products.

        Returns:
            True when the result was applied, False when the active store
            changed while the request was in flight
        """
        store = require_store(self.app_store)
        with self._lock:
            generation = self._generation

        products = self.client.list_products(store.store_id)

        with self._lock:
            if generation != self._generation:
                self.logger.info(f"Discarding stale product list for store {store.store_id}")
                return False
            self._products = products
            self._store_id = store.store_id
        self.logger.debug(f"Loaded {len(products)} products for store {store.store_id}")
        return True

    def refresh_quietly(self, _response: Optional[Dict[str, Any]] = None) -> None:
        """Best-effort refresh after a successful mutation."""
        try:
            self.refresh()
        except Exception as e:
            self.logger.warning(f"Background catalog refresh failed: {str(e)}")

    @property
    def products(self) -> List[Product]:
        """Products of the active store, fetched on first use."""
        store = require_store(self.app_store)
        if self._store_id != store.store_id:
            self.refresh()
        with self._lock:
            return list(self._products)

    def close(self) -> None:
        self._unsubscribe()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def view(self, filters: Optional[ViewFilters] = None, page: int = 1,
             page_size: Optional[int] = None) -> ProjectedView:
        """Filtered, classified page of the product list (page clamped into range)."""
        size = page_size or self.config.views.products_page_size
        products = self.products
        first = project(products, filters, 1, size)
        page = clamp_page(page, first.total_pages)
        return first if page == 1 else project(products, filters, page, size)

    def categories(self) -> List[str]:
        store = require_store(self.app_store)
        return self.client.list_categories(store.store_id)

    def low_stock(self, page: int = 1) -> ProjectedView:
        store = require_store(self.app_store)
        items = self.client.low_and_out_of_stock(store.store_id)
        size = self.config.views.low_stock_page_size
        total_pages = paginate(items, 1, size).total_pages
        return paginate(items, clamp_page(page, total_pages), size)

    def get_product(self, product_id: str) -> Product:
        """
        Fetch one product of the active store.

        Raises:
            NotFoundError: The product no longer exists
        """
        store = require_store(self.app_store)
        return self.client.get_product(store.store_id, product_id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def delete_product(self, product_id: str) -> Dict[str, Any]:
        store = require_store(self.app_store)
        response = self.client.delete_product(store.business_id, product_id)
        with self._lock:
            self._products = [p for p in self._products if p.id != product_id]
        self.logger.info(f"Deleted product {product_id} from business {store.business_id}")
        return response

    def product_submitter(self, draft: ProductDraft) -> IdempotentSubmitter:
        """
        Submitter that validates and uploads ``draft``.

        The same draft contents in the same store always get the same
        submitter, so a retry after a failed upload reuses its idempotency
        key and a repeat after success is reported as a duplicate.
        """
        store = require_store(self.app_store)
        key = _draft_key(store.store_id, draft)
        with self._lock:
            submitter = self._product_submitters.get(key)
            if submitter is None:
                submitter = self._build_product_submitter(store, copy.deepcopy(draft))
                self._product_submitters[key] = submitter
        return submitter

    def _build_product_submitter(self, store: StoreSummary, draft: ProductDraft) -> IdempotentSubmitter:
        schema = product_schema()
        schema.checks.append(_files_exist)

        def send(token: str, payload: Dict[str, Any]) -> Dict[str, Any]:
            fields = {
                "name": draft.name,
                "storeId": store.store_id,
                "businessId": store.business_id,
                "businessName": store.business_name,
                "brand": draft.brand,
                "category": draft.category,
                "description": draft.description,
                "idempotencyKey": token,
                "tags": draft.tags,
            }
            response = self.client.create_product(
                store.business_id,
                fields,
                draft.variants_payload(),
                thumbnail=draft.thumbnail,
                variant_images=[v.image for v in draft.variants if v.image],
            )
            product = response.get("product") if isinstance(response.get("product"), dict) else {}
            response = dict(response)
            if not response.get("message"):
                response["message"] = product.get("message") or "Product created successfully"
            return response

        return IdempotentSubmitter(
            send,
            name="product",
            validator=FormValidator(schema),
            notifier=self.notifier,
            on_success=self.refresh_quietly,
        )

    def create_product(self, draft: ProductDraft) -> SubmissionResult:
        submitter = self.product_submitter(draft)
        form = draft.to_form()
        return submitter.submit(form, form=form)
