"""Store management: the business's stores, their details and their staff."""

from dataclasses import replace
from typing import Any, Dict, List, Optional

from .app_store import AppStore
from ..api.stockpilot_client import StockPilotClient
from ..middleware.form_validator import FormValidator
from ..middleware.schemas import invite_schema, store_details_schema, store_schema
from ..models.session import StoreSummary, StoreUser
from ..utils.exceptions import ConfigurationError, FormValidationError
from ..utils.logger import get_catalog_logger

ROLES = ("owner", "manager", "staff")


class StoreService:
    """Stores of the signed-in user's business."""

    def __init__(self, client: StockPilotClient, app_store: AppStore):
        self.client = client
        self.app_store = app_store
        self.logger = get_catalog_logger()

    def _business_id(self) -> str:
        store = self.app_store.get_active_store()
        if store is not None and store.business_id:
            return store.business_id
        user = self.app_store.user
        if user is not None and user.business_id:
            return user.business_id
        raise ConfigurationError("No business selected. Sign in with `stockpilot login EMAIL` first.")

    def refresh(self) -> List[StoreSummary]:
        """Reload the store list of the business into the session."""
        stores = self.client.list_stores(self._business_id())
        self.app_store.set_stores(stores)
        return stores

    def create_store(self, name: str, currency: str = "USD", location: str = "",
                     logo_url: str = "") -> StoreSummary:
        """
        Create a store and add it to the session's store list.

        Raises:
            FormValidationError: Name or currency missing, bad logo URL
            ConflictError: The business already has a store with that name
        """
        form = {"name": name, "currency": currency, "logo_url": logo_url}
        FormValidator(store_schema()).require_valid(form)

        business_id = self._business_id()
        store = self.client.create_store({
            "storeName": name.strip(),
            "currency": currency.strip().upper(),
            "location": location,
            "logoUrl": logo_url or None,
            "businessId": business_id,
        })
        self.app_store.set_stores(list(self.app_store.state.stores) + [store])
        self.logger.info(f"Created store {store.store_id} ({store.store_name}) in business {business_id}")
        return store

    def update_store(self, store_id: str, **fields) -> StoreSummary:
        """
        Change name, address, currency or location of a store.

        The active store is replaced when it is the one edited.

        Raises:
            FormValidationError: Name or currency left blank
        """
        current = self._find(store_id)
        form = {
            "name": fields.get("name") if fields.get("name") is not None else (current.store_name if current else ""),
            "currency": fields.get("currency") or (current.currency if current else ""),
        }
        FormValidator(store_details_schema()).require_valid(form)

        payload: Dict[str, Any] = {k: v for k, v in fields.items() if v is not None}
        payload["business_id"] = self._business_id()
        updated = self.client.update_store(store_id, payload)
        if not updated.business_name and current is not None:
            updated = replace(updated, business_name=current.business_name)

        stores = [updated if s.store_id == store_id else s for s in self.app_store.state.stores]
        self.app_store.set_stores(stores)
        active = self.app_store.active_store
        if active is not None and active.store_id == store_id:
            self.app_store.set_active_store(updated)
        self.logger.info(f"Updated store {store_id}")
        return updated

    def delete_store(self, store_id: str) -> Dict[str, Any]:
        """Delete a store; when it was the active one, no store stays selected."""
        response = self.client.delete_store(store_id)
        self.app_store.set_stores([s for s in self.app_store.state.stores if s.store_id != store_id])
        active = self.app_store.active_store
        if active is not None and active.store_id == store_id:
            self.app_store.set_active_store(None)
        self.logger.info(f"Deleted store {store_id}")
        return response

    def set_role(self, store_id: str, user_id: str, role: str) -> List[StoreUser]:
        role = role.strip().lower()
        if role not in ROLES:
            raise FormValidationError(f"Role must be one of: {', '.join(ROLES)}")
        return self._apply_user_actions(store_id, [{"type": "update_role", "userId": user_id, "role": role}])

    def remove_user(self, store_id: str, user_id: str) -> List[StoreUser]:
        return self._apply_user_actions(store_id, [{"type": "remove", "userId": user_id}])

    def _apply_user_actions(self, store_id: str, actions: List[Dict[str, Any]]) -> List[StoreUser]:
        response = self.client.update_store_users(store_id, actions)
        self.logger.info(f"Applied {len(actions)} user change(s) to store {store_id}")
        return response["users"]

    def invite(self, store_id: str, email: str, role: str = "staff") -> Dict[str, Any]:
        """
        Invite someone to join a store's staff by e-mail.

        Raises:
            FormValidationError: E-mail or role missing
        """
        FormValidator(invite_schema()).require_valid({"email": email, "role": role})
        store = self._find(store_id)
        user = self.app_store.user
        response = self.client.send_store_invite(store_id, {
            "email": email.strip(),
            "business_id": self._business_id(),
            "invited_by": user.id if user else "",
            "store_name": store.store_name if store else "",
            "role": role.strip().lower() or "staff",
        })
        self.logger.info(f"Invited {email} to store {store_id} as {role}")
        return response

    def _find(self, store_id: str) -> Optional[StoreSummary]:
        return next((s for s in self.app_store.state.stores if s.store_id == store_id), None)
