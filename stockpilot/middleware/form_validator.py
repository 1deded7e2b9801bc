"""Declarative form validation run before any submission reaches the API.

A :class:`FormSchema` lists rules for top-level fields (dotted paths such as
``customer.name``) and for every element of one line-item array. A
validation pass evaluates all fields and all items so the caller gets the
complete error map at once; the only short-circuit is an empty line-item
array, which is reported as a single global error.
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from ..utils.exceptions import FormValidationError
from ..utils.logger import get_submit_logger

# A rule returns an error message, or None when the value passes.
Rule = Callable[[Any], Optional[str]]
# A check inspects the whole form and records errors itself.
Check = Callable[[Mapping[str, Any], "ValidationErrorMap"], None]

_PATH_TOKEN = re.compile(r"([^.\[\]]+)|\[(\d+)\]")
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_URL = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def _as_number(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))
    if isinstance(value, str) and value.strip():
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            return None
    return None


def required(message: str) -> Rule:
    """Non-empty value; strings are trimmed first."""
    def rule(value: Any) -> Optional[str]:
        if value is None:
            return message
        if isinstance(value, str) and not value.strip():
            return message
        if isinstance(value, (list, tuple, dict)) and not value:
            return message
        return None
    return rule


def positive(message: str) -> Rule:
    """Numeric value strictly greater than zero."""
    def rule(value: Any) -> Optional[str]:
        number = _as_number(value)
        if number is None or number <= 0:
            return message
        return None
    return rule


def non_negative(message: str) -> Rule:
    """Numeric value greater than or equal to zero."""
    def rule(value: Any) -> Optional[str]:
        number = _as_number(value)
        if number is None or number < 0:
            return message
        return None
    return rule


def positive_integer(message: str) -> Rule:
    """Whole number greater than zero (``2.0`` and ``"2.5"`` are rejected)."""
    def rule(value: Any) -> Optional[str]:
        if isinstance(value, bool):
            return message
        if isinstance(value, int):
            return None if value > 0 else message
        if isinstance(value, str) and value.strip().isdigit():
            return None if int(value.strip()) > 0 else message
        return message
    return rule


def pattern(regex: str, message: str) -> Rule:
    """String containing a match for ``regex``."""
    compiled = re.compile(regex)

    def rule(value: Any) -> Optional[str]:
        if not isinstance(value, str) or not compiled.search(value):
            return message
        return None
    return rule


def min_length(length: int, message: str) -> Rule:
    """Trimmed string of at least ``length`` characters."""
    def rule(value: Any) -> Optional[str]:
        if not isinstance(value, str) or len(value.strip()) < length:
            return message
        return None
    return rule


def url(message: str) -> Rule:
    """http(s) URL; blank passes (combine with ``required``)."""
    def rule(value: Any) -> Optional[str]:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        if not isinstance(value, str) or not _URL.match(value.strip()):
            return message
        return None
    return rule


def email(message: str) -> Rule:
    """Plausible e-mail address; blank passes (combine with ``required``)."""
    def rule(value: Any) -> Optional[str]:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        if not isinstance(value, str) or not _EMAIL.match(value.strip()):
            return message
        return None
    return rule


def one_of(choices: Iterable[Any], message: str) -> Rule:
    """Value taken from a closed set; blank passes (combine with ``required``)."""
    allowed = frozenset(choices)

    def rule(value: Any) -> Optional[str]:
        if value in (None, ""):
            return None
        return None if value in allowed else message
    return rule


# ---------------------------------------------------------------------------
# Error map
# ---------------------------------------------------------------------------

def item_path(items_path: str, index: int, name: str) -> str:
    """``productVariants``, 2, ``sku`` -> ``productVariants[2].sku``."""
    return f"{items_path}[{index}].{name}"


def resolve_path(data: Any, path: str) -> Any:
    """Read ``customer.name`` or ``items[0].quantity`` out of nested mappings."""
    current = data
    for match in _PATH_TOKEN.finditer(path):
        key, index = match.groups()
        if current is None:
            return None
        if index is not None:
            position = int(index)
            if not isinstance(current, Sequence) or position >= len(current):
                return None
            current = current[position]
        elif isinstance(current, Mapping):
            current = current.get(key)
        else:
            current = getattr(current, key, None)
    return current


class ValidationErrorMap:
    """
    Errors of one validation pass.

    ``fields`` maps every field path to its message (empty string when the
    field passed). ``items`` holds one dict per line item, index-aligned
    with the submitted items. ``global_error`` is set when the form is
    rejected as a whole.
    """

    def __init__(self, items_path: Optional[str] = None):
        self.items_path = items_path
        self.fields: Dict[str, str] = {}
        self.items: List[Dict[str, str]] = []
        self.global_error: Optional[str] = None

    def set(self, path: str, message: Optional[str]) -> None:
        """Record ``message`` for ``path``; an existing message is kept."""
        if self.fields.get(path):
            return
        self.fields[path] = message or ""
        self._mirror_item(path, message or "")

    def get(self, path: str) -> str:
        return self.fields.get(path, "")

    def clear(self, path: str) -> None:
        """Blank the message of one field (the user is editing it again)."""
        if path in self.fields:
            self.fields[path] = ""
            self._mirror_item(path, "")

    def _mirror_item(self, path: str, message: str) -> None:
        if not self.items_path or not path.startswith(f"{self.items_path}["):
            return
        match = re.match(rf"^{re.escape(self.items_path)}\[(\d+)\]\.(.+)$", path)
        if not match:
            return
        index, name = int(match.group(1)), match.group(2)
        while len(self.items) <= index:
            self.items.append({})
        self.items[index][name] = message

    @property
    def has_errors(self) -> bool:
        return bool(self.global_error) or any(self.fields.values())

    def messages(self) -> List[str]:
        """Every non-empty message, global error first."""
        found = [self.global_error] if self.global_error else []
        found.extend(f"{path}: {message}" for path, message in self.fields.items() if message)
        return found

    def __contains__(self, path: str) -> bool:
        return bool(self.fields.get(path))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "global_error": self.global_error,
            "fields": {k: v for k, v in self.fields.items() if v},
            "items": [dict(item) for item in self.items],
        }


@dataclass
class ValidationOutcome:
    """Result of :meth:`FormValidator.validate`."""

    is_valid: bool
    errors: ValidationErrorMap


# ---------------------------------------------------------------------------
# Schema and validator
# ---------------------------------------------------------------------------

@dataclass
class FormSchema:
    """Rules of one form."""

    fields: Dict[str, List[Rule]] = field(default_factory=dict)
    items_path: Optional[str] = None
    item_rules: Dict[str, List[Rule]] = field(default_factory=dict)
    empty_items_message: str = "Add at least one item before submitting."
    unique_item_key: Optional[str] = None
    duplicate_item_message: str = "This item is already on the list"
    checks: List[Check] = field(default_factory=list)


class FormValidator:
    """Runs a :class:`FormSchema` against form data."""

    def __init__(self, schema: FormSchema):
        self.schema = schema
        self.logger = get_submit_logger()

    def validate(self, data: Mapping[str, Any]) -> ValidationOutcome:
        """
        Validate ``data`` in a single pass.

        Returns:
            ValidationOutcome whose ``errors`` holds every failing field
        """
        schema = self.schema
        errors = ValidationErrorMap(schema.items_path)

        items: List[Any] = []
        if schema.items_path:
            items = list(resolve_path(data, schema.items_path) or [])
            if not items:
                errors.global_error = schema.empty_items_message
                self.logger.debug(f"Validation failed fast: {schema.empty_items_message}")
                return ValidationOutcome(is_valid=False, errors=errors)

        for path, rules in schema.fields.items():
            errors.set(path, self._first_failure(rules, resolve_path(data, path)))

        for index, item in enumerate(items):
            for name, rules in schema.item_rules.items():
                value = resolve_path(item, name)
                errors.set(item_path(schema.items_path, index, name), self._first_failure(rules, value))

        if schema.unique_item_key:
            self._check_unique(items, errors)

        for check in schema.checks:
            check(data, errors)

        if errors.has_errors:
            self.logger.debug(f"Validation failed: {errors.messages()}")
        return ValidationOutcome(is_valid=not errors.has_errors, errors=errors)

    def require_valid(self, data: Mapping[str, Any]) -> None:
        """
        Validate a form that is sent without a submitter.

        Raises:
            FormValidationError: Carrying the full error map
        """
        outcome = self.validate(data)
        if not outcome.is_valid:
            messages = outcome.errors.messages()
            raise FormValidationError(
                outcome.errors.global_error or f"Please fix {len(messages)} field(s) before submitting.",
                errors=outcome.errors,
            )

    @staticmethod
    def _first_failure(rules: List[Rule], value: Any) -> Optional[str]:
        for rule in rules:
            message = rule(value)
            if message:
                return message
        return None

    def _check_unique(self, items: List[Any], errors: ValidationErrorMap) -> None:
        key = self.schema.unique_item_key
        seen: Dict[Any, int] = {}
        for item in items:
            value = resolve_path(item, key)
            if value in (None, ""):
                continue
            seen[value] = seen.get(value, 0) + 1
        for index, item in enumerate(items):
            value = resolve_path(item, key)
            if seen.get(value, 0) > 1:
                errors.set(
                    item_path(self.schema.items_path, index, key),
                    self.schema.duplicate_item_message
                )
