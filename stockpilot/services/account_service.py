"""Accounts: signing up a dashboard user and registering their business."""

from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List

from .app_store import AppStore
from ..api.stockpilot_client import StockPilotClient
from ..middleware.form_validator import FormValidator
from ..middleware.schemas import register_business_schema, signup_schema
from ..models.session import StoreSummary, User
from ..utils.exceptions import ConfigurationError
from ..utils.logger import get_catalog_logger


def capitalize_words(text: str) -> str:
    """``"ada  LOVELACE"`` -> ``"Ada Lovelace"``."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split())


class AccountService:
    """Sign-up and business registration for the local session."""

    def __init__(self, client: StockPilotClient, app_store: AppStore):
        self.client = client
        self.app_store = app_store
        self.logger = get_catalog_logger()

    def sign_up(self, first_name: str, last_name: str, email: str, password: str,
                agree_to_terms: bool) -> User:
        """
        Create the backend account and sign in as it.

        The password is checked against the strength rules only; credentials
        are held by the identity provider, not by this backend.

        Raises:
            FormValidationError: A field breaks the sign-up rules
            ConflictError: The e-mail is already registered
        """
        FormValidator(signup_schema()).require_valid({
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
            "password": password,
            "agree_to_terms": agree_to_terms,
        })

        user = self.client.sign_up(capitalize_words(f"{first_name} {last_name}"), email.strip())
        self.app_store.set_user(user)
        self.logger.info(f"Signed up {user.email} ({user.id})")
        return user

    def register_business(self, fields: Dict[str, Any], logo: Path) -> List[StoreSummary]:
        """
        Register the signed-in user's business with its first store.

        The stores the backend answers with replace the session's store
        list and its active store is selected.

        Raises:
            ConfigurationError: Nobody is signed in
            FormValidationError: A field breaks the registration rules
            ConflictError: The business or store name is taken
        """
        user = self.app_store.user
        if user is None:
            raise ConfigurationError("Sign in with `stockpilot login EMAIL` before registering a business.")

        form = dict(fields, image_file=str(logo) if logo else "")
        FormValidator(register_business_schema()).require_valid(form)

        response = self.client.register_business(dict(fields, owner_user_id=user.id), Path(logo))
        stores = [StoreSummary.from_dict(s) for s in response.get("stores") or []]
        active = response.get("active_store")
        active_store = StoreSummary.from_dict(active) if active else (stores[0] if stores else None)

        business_id = active_store.business_id if active_store else ""
        if business_id and not user.business_id:
            self.app_store.set_user(replace(user, role=user.role or "owner", business_id=business_id))
        self.app_store.set_stores(stores)
        self.app_store.set_active_store(active_store)
        self.logger.info(f"Registered business {fields.get('business_name')} with {len(stores)} store(s)")
        return stores
