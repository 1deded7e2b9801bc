"""StockPilot REST API client."""

import json
from datetime import date
from pathlib import Path
from typing import List, Dict, Any, Optional

import httpx

from .base_client import BaseClient
from ..models.analytics import InventoryKPI, TopProduct
from ..models.product import Product, LowStockItem
from ..models.returns import ReturnPolicy, ReturnRecord, SaleItem, StoreCredit
from ..models.session import StoreSummary, StoreUser, User
from ..utils.config import AppConfig, get_config
from ..utils.exceptions import (
    AuthenticationError,
    ConflictError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    StockPilotAPIError,
)


def error_message(response: httpx.Response) -> str:
    """
    Pull the human-readable message out of an error envelope.

    Accepts ``{"message": ...}``, ``{"error": {"message": ...}}`` and
    ``{"error": "..."}``; falls back to the raw body.
    """
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, list):
            message = "; ".join(str(m) for m in message)
        if message:
            return str(message)
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return response.text or f"HTTP {response.status_code}"


_STATUS_ERRORS = {
    401: AuthenticationError,
    403: AuthenticationError,
    404: NotFoundError,
    409: ConflictError,
    429: RateLimitError,
}


class StockPilotClient(BaseClient):
    """Client for the StockPilot backend."""

    def __init__(self, config: Optional[AppConfig] = None, transport: Optional[httpx.BaseTransport] = None):
        """Initialize the client from environment configuration."""
        config = config or get_config()
        headers = {}
        if config.env.stockpilot_api_token:
            headers["Authorization"] = f"Bearer {config.env.stockpilot_api_token}"

        super().__init__(
            base_url=config.env.stockpilot_api_url,
            headers=headers,
            config=config,
            transport=transport
        )

    # ------------------------------------------------------------------
    # Low-level request helper
    # ------------------------------------------------------------------

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        """
        Perform a request and return the decoded JSON body.

        Raises:
            NetworkError: No response after all retries
            NotFoundError / ConflictError / AuthenticationError / RateLimitError:
                Mapped from the HTTP status
            StockPilotAPIError: Any other non-2xx answer
        """
        try:
            response = self._make_request_with_retry(method, endpoint, **kwargs)
        except httpx.TransportError as e:
            self.logger.error(f"{method} {endpoint} failed without a response: {str(e)}")
            raise NetworkError(f"Network error: {str(e)}", details={"endpoint": endpoint})

        if response.status_code >= 400:
            message = error_message(response)
            error_class = _STATUS_ERRORS.get(response.status_code, StockPilotAPIError)
            self.logger.warning(f"{method} {endpoint} -> HTTP {response.status_code}: {message}")
            raise error_class(
                message,
                details={"endpoint": endpoint, "response": response.text},
                status_code=response.status_code
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            raise StockPilotAPIError(
                f"Invalid JSON from {endpoint}",
                details={"response": response.text},
                status_code=response.status_code
            )

    # ------------------------------------------------------------------
    # Session, business and stores
    # ------------------------------------------------------------------

    def find_user(self, email: str) -> User:
        """Look up a dashboard user by e-mail."""
        data = self._request("POST", "/users/find", json={"email": email}) or {}
        # Top-level fields win; the nested user object carries business_id.
        nested = data.get("user") if isinstance(data.get("user"), dict) else {}
        merged = {**nested, **{k: v for k, v in data.items() if k != "user" and v is not None}}
        if "id" not in merged:
            raise NotFoundError(f"No user found for {email}", status_code=404)
        merged.setdefault("email", email)
        return User.from_dict(merged)

    def sign_up(self, name: str, email: str) -> User:
        """
        Create the backend account of a new dashboard user.

        Raises:
            ConflictError: The e-mail is already registered
        """
        data = self._request("POST", "/auth/signup", json={"name": name, "email": email})
        return User.from_dict(data.get("user", data))

    def register_business(self, fields: Dict[str, Any], logo: Path) -> Dict[str, Any]:
        """
        Register a business with its first store (multipart, logo attached).

        Raises:
            ConflictError: A business or store with that name already exists
        """
        data = {key: str(value) for key, value in fields.items() if value is not None}
        with open(logo, "rb") as handle:
            return self._request(
                "POST",
                "/businesses/register",
                data=data,
                files=[("image_file", (Path(logo).name, handle))]
            )

    def get_store(self, store_id: str) -> StoreSummary:
        data = self._request("GET", f"/stores/{store_id}")
        return StoreSummary.from_dict(data.get("store", data))

    def list_stores(self, business_id: str) -> List[StoreSummary]:
        data = self._request("GET", f"/stores/{business_id}/all")
        stores = data.get("stores", []) if isinstance(data, dict) else data
        return [StoreSummary.from_dict(s) for s in stores or []]

    def create_store(self, payload: Dict[str, Any]) -> StoreSummary:
        """
        Create a store in the signed-in user's business.

        Raises:
            ConflictError: The business already has a store with that name
        """
        data = self._request("POST", "/stores", json=payload)
        return StoreSummary.from_dict(data.get("store", data))

    def update_store(self, store_id: str, payload: Dict[str, Any]) -> StoreSummary:
        data = self._request("PATCH", f"/stores/{store_id}", json=payload)
        return StoreSummary.from_dict(data.get("store", data))

    def delete_store(self, store_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/stores/{store_id}")

    def update_store_users(self, store_id: str, actions: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Apply role changes and removals; answers with the new member list."""
        data = self._request("PATCH", f"/stores/{store_id}/users", json={"actions": actions})
        data = dict(data)
        data["users"] = [StoreUser.from_dict(u) for u in data.get("users") or []]
        return data

    def send_store_invite(self, store_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"/stores/{store_id}/send-invite", json=dict(payload, store_id=store_id))

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def list_products(self, store_id: str) -> List[Product]:
        data = self._request("GET", f"/businesses/stores/{store_id}/products")
        return [Product.from_dict(p) for p in data.get("products", [])]

    def get_product(self, store_id: str, product_id: str) -> Product:
        """
        Fetch one product.

        Raises:
            NotFoundError: The product was deleted or never existed
        """
        data = self._request("GET", f"/businesses/stores/{store_id}/products/{product_id}")
        product = data.get("product")
        if not product:
            raise NotFoundError(f"Product not found: {product_id}", status_code=404)
        return Product.from_dict(product)

    def list_categories(self, store_id: str) -> List[str]:
        data = self._request("GET", f"/businesses/stores/{store_id}/categories")
        categories = data.get("categories", []) if isinstance(data, dict) else data
        return [c.get("name", "") if isinstance(c, dict) else str(c) for c in categories or []]

    def delete_product(self, business_id: str, product_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/businesses/{business_id}/products/{product_id}")

    def create_product(
        self,
        business_id: str,
        fields: Dict[str, Any],
        variants: List[Dict[str, Any]],
        thumbnail: Optional[Path] = None,
        variant_images: Optional[List[Path]] = None,
    ) -> Dict[str, Any]:
        """
        Create a product with its variants as a multipart form.

        ``variants`` travels as a JSON string; image files follow in the
        same order as the variants.
        """
        data = {key: str(value) for key, value in fields.items() if not isinstance(value, (list, dict))}
        data["tags"] = json.dumps(fields.get("tags", []))
        data["productVariants"] = json.dumps(variants, default=str)

        opened = []
        try:
            files = []
            if thumbnail is not None:
                handle = open(thumbnail, "rb")
                opened.append(handle)
                files.append(("thumbnailFile", (Path(thumbnail).name, handle)))
            for image in variant_images or []:
                handle = open(image, "rb")
                opened.append(handle)
                files.append(("variantImages", (Path(image).name, handle)))

            return self._request(
                "POST",
                f"/businesses/{business_id}/products",
                data=data,
                files=files or None
            )
        finally:
            for handle in opened:
                handle.close()

    def low_and_out_of_stock(self, store_id: str) -> List[LowStockItem]:
        data = self._request("GET", f"/inventory/low-and-out-stocks/{store_id}")
        return [LowStockItem.from_dict(item) for item in data.get("items", [])]

    # ------------------------------------------------------------------
    # Sales and inventory mutations
    # ------------------------------------------------------------------

    def create_sale(self, token: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = dict(payload, idempotency_key=token)
        return self._request("POST", "/sales/create", json=body)

    def restock(self, token: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = dict(payload, idempotency_key=token)
        return self._request("POST", "/inventory/restock", json=body)

    def create_return(self, token: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = dict(payload, idempotencyKey=token)
        return self._request("POST", "/returns/create", json=body)

    # ------------------------------------------------------------------
    # Sales and returns lookups
    # ------------------------------------------------------------------

    def get_sale_items(self, sale_code: str) -> List[SaleItem]:
        data = self._request("GET", f"/sales/{sale_code}")
        return [SaleItem.from_dict(item) for item in data.get("saleItems", [])]

    def list_sales(self, store_id: str, day: Optional[date] = None) -> List[SaleItem]:
        params = {"date": day.isoformat()} if day else None
        data = self._request("GET", f"/sales/stores/{store_id}", params=params)
        return [SaleItem.from_dict(item) for item in data.get("saleItems", [])]

    def get_return_policy(self, store_id: str) -> ReturnPolicy:
        data = self._request("GET", f"/returns/policy/{store_id}")
        policy = data.get("policy")
        if not policy:
            raise NotFoundError(f"No return policy configured for store {store_id}", status_code=404)
        return ReturnPolicy.from_dict(policy)

    def create_return_policy(self, store_id: str, policy: ReturnPolicy) -> ReturnPolicy:
        data = self._request("POST", "/returns/policy/create", json=dict(policy.to_payload(), storeId=store_id))
        return ReturnPolicy.from_dict(data.get("policy") or data)

    def update_return_policy(self, store_id: str, policy: ReturnPolicy) -> ReturnPolicy:
        data = self._request("PATCH", f"/returns/policy/{store_id}", json=policy.to_payload())
        return ReturnPolicy.from_dict(data.get("policy") or data)

    # ------------------------------------------------------------------
    # Return review
    # ------------------------------------------------------------------

    def list_returns(self, store_id: str) -> List[ReturnRecord]:
        data = self._request("GET", f"/returns/{store_id}")
        records = data.get("returns", []) if isinstance(data, dict) else data
        return [ReturnRecord.from_dict(r) for r in records or []]

    def list_store_credits(self, store_id: str) -> List[StoreCredit]:
        data = self._request("GET", f"/returns/store-credits/{store_id}")
        credits = data.get("credits", []) if isinstance(data, dict) else data
        return [StoreCredit.from_dict(c) for c in credits or []]

    def review_returns(self, store_id: str, return_ids: List[str], approve: bool, manager_id: str) -> Dict[str, Any]:
        return self._request("POST", "/returns/review", json={
            "returnIds": list(return_ids),
            "approve": approve,
            "storeId": store_id,
            "managerId": manager_id,
        })

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def inventory_kpis(self, store_id: str) -> InventoryKPI:
        return InventoryKPI.from_dict(self._request("GET", f"/analytics/inventory-kpi/{store_id}") or {})

    def sale_kpis(self, store_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/analytics/sale-kpi/{store_id}") or {}

    def top_selling_products(self, store_id: str) -> List[TopProduct]:
        data = self._request("GET", f"/analytics/top-selling-products/{store_id}")
        products = data.get("products", []) if isinstance(data, dict) else data
        return [TopProduct.from_dict(p) for p in products or []]
