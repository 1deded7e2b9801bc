"""Validation schemas of the forms the CLI collects before calling the API."""

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .form_validator import (
    FormSchema,
    ValidationErrorMap,
    item_path,
    min_length,
    non_negative,
    one_of,
    pattern,
    positive,
    positive_integer,
    required,
    email,
    url,
)
from ..models.returns import RESOLUTIONS, ReturnPolicy

QUANTITY_MESSAGE = "Quantity must be a whole number greater than zero"


def sale_schema() -> FormSchema:
    return FormSchema(
        fields={
            "customer.name": [required("Customer name is required")],
            "customer.email": [email("Please enter a valid email address")],
            "payment_method": [required("Payment method is required")],
        },
        items_path="items",
        item_rules={
            "quantity": [positive_integer(QUANTITY_MESSAGE)],
            "unit_price": [
                required("This variant is not in the store's catalog"),
                non_negative("Unit price cannot be negative"),
            ],
        },
        empty_items_message="Add at least one item to the cart before submitting.",
        unique_item_key="reference_id",
        duplicate_item_message="This variant is already in the cart",
    )


def restock_schema() -> FormSchema:
    return FormSchema(
        items_path="items",
        item_rules={"quantity": [positive_integer(QUANTITY_MESSAGE)]},
        empty_items_message="Select at least one variant to restock.",
        unique_item_key="reference_id",
        duplicate_item_message="This variant is already being restocked",
    )


def return_schema(
    policy: Optional[ReturnPolicy] = None,
    purchased: Optional[Dict[str, int]] = None,
) -> FormSchema:
    """
    Schema of the return form.

    Args:
        policy: Store return policy; resolutions it forbids are rejected
        purchased: Sale item id -> purchased quantity, caps each return line
    """
    purchased = purchased or {}

    def within_policy(data: Mapping[str, Any], errors: ValidationErrorMap) -> None:
        items = data.get("items") or []
        if policy and len(items) > policy.max_items_per_return:
            errors.global_error = f"Max {policy.max_items_per_return} items can be returned."
        for index, item in enumerate(items):
            resolution = item.get("resolution")
            if policy and resolution in RESOLUTIONS and not policy.allows(resolution):
                errors.set(
                    item_path("items", index, "resolution"),
                    f"{resolution.replace('_', ' ').title()} is not allowed by the store policy"
                )
            limit = purchased.get(item.get("reference_id"))
            quantity = item.get("quantity")
            if limit is not None and isinstance(quantity, int) and quantity > limit:
                errors.set(
                    item_path("items", index, "quantity"),
                    f"Only {limit} unit(s) were purchased"
                )

    return FormSchema(
        fields={"sale_code": [required("Sale code is required")]},
        items_path="items",
        item_rules={
            "quantity": [positive_integer(QUANTITY_MESSAGE)],
            "reason": [required("Reason is required")],
            "resolution": [
                required("Resolution is required"),
                one_of(RESOLUTIONS, "Resolution must be REFUND, EXCHANGE or STORE_CREDIT"),
            ],
        },
        empty_items_message="Add at least one item to return.",
        unique_item_key="reference_id",
        duplicate_item_message="This sale item is already on the return",
        checks=[within_policy],
    )


def signup_schema() -> FormSchema:
    return FormSchema(
        fields={
            "first_name": [required("First name is required")],
            "last_name": [required("Last name is required")],
            "email": [
                required("Please enter a valid email address"),
                email("Please enter a valid email address"),
            ],
            "password": [
                pattern(r"^.{8,}$", "Password must be at least 8 characters"),
                pattern(r"[A-Z]", "Must include an uppercase letter"),
                pattern(r"[a-z]", "Must include a lowercase letter"),
                pattern(r"\d", "Must include a number"),
            ],
            "agree_to_terms": [
                required("You must agree to the terms and conditions"),
                one_of([True], "You must agree to the terms and conditions"),
            ],
        },
    )


def product_schema() -> FormSchema:
    return FormSchema(
        fields={
            "name": [required("Product name is required")],
            "brand": [required("Brand is required")],
            "description": [required("Description is required")],
            "categoryType": [required("Category is required")],
            "thumbnail": [required("Thumbnail image file is required")],
        },
        items_path="productVariants",
        item_rules={
            "name": [required("Name is required")],
            "image": [required("Variant image is required")],
            "sku": [required("SKU is required")],
            "price": [positive("Price is required")],
            "inventory.quantity": [positive("Quantity is required")],
            "inventory.lowQuantityThreshold": [positive("Low quantity threshold is required")],
            "inventory.reserved": [non_negative("Reserved must be zero or more")],
        },
        empty_items_message="At least one variant is required",
        unique_item_key="sku",
        duplicate_item_message="SKU must be unique within the product",
    )


def store_schema() -> FormSchema:
    return FormSchema(
        fields={
            "name": [min_length(2, "Store name is required")],
            "currency": [required("Currency is required")],
            "logo_url": [url("Must be a valid URL")],
        },
    )


def store_details_schema() -> FormSchema:
    return FormSchema(
        fields={
            "name": [min_length(2, "Store name is required")],
            "currency": [required("Currency is required")],
        },
    )


def invite_schema() -> FormSchema:
    return FormSchema(
        fields={
            "email": [required("Please enter an email"), email("Please enter a valid email address")],
            "role": [required("Please enter a role")],
        },
    )


def register_business_schema() -> FormSchema:
    def logo_exists(data: Mapping[str, Any], errors: ValidationErrorMap) -> None:
        logo = data.get("image_file")
        if logo and not Path(logo).is_file():
            errors.set("image_file", f"Logo image file not found: {logo}")

    return FormSchema(
        fields={
            "business_name": [min_length(2, "Business name is required")],
            "store_name": [min_length(2, "Store name is required")],
            "currency": [required("Currency is required")],
            "location": [required("Location is required")],
            "owner_name": [min_length(2, "Owner name is required")],
            "email": [required("Invalid email"), email("Invalid email")],
            "phone": [min_length(6, "Invalid phone number")],
            "website": [url("Must be a valid URL")],
            "image_file": [required("Logo image file is required")],
        },
        checks=[logo_exists],
    )


def return_policy_schema() -> FormSchema:
    return FormSchema(
        fields={
            "daysAllowed": [non_negative("Days allowed cannot be negative")],
            "restockingFee": [non_negative("Restocking fee cannot be negative")],
            "maxItemsPerReturn": [positive_integer("Max items per return must be a whole number greater than zero")],
        },
    )
