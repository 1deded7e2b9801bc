"""Tests for the returns composer."""

from decimal import Decimal

import pytest

from stockpilot.models.returns import APPROVED, PENDING, ReturnPolicy, ReturnRecord, StoreCredit
from stockpilot.models.submission import SubmissionOutcome
from stockpilot.services.return_service import ReturnComposer, ReturnDesk
from stockpilot.utils.exceptions import (
    FormValidationError,
    NetworkError,
    NotFoundError,
    PolicyViolationError,
)


@pytest.fixture
def composer(mock_client, app_store, notifier):
    composer = ReturnComposer(mock_client, app_store, notifier)
    composer.load_policy()
    composer.load_sale("S-100")
    return composer


class TestLoading:
    def test_policy_loaded_for_active_store(self, composer, mock_client):
        mock_client.get_return_policy.assert_called_once_with("store-1")
        mock_client.get_sale_items.assert_called_once_with("S-100")
        assert [item.id for item in composer.sale_items] == ["si-1", "si-2"]

    def test_switching_sale_drops_picked_lines(self, composer):
        composer.add_item("si-1")

        composer.load_sale("S-200")

        assert composer.items == []


class TestPolicy:
    def test_max_items_per_return(self, mock_client, app_store):
        mock_client.get_return_policy.return_value = ReturnPolicy(max_items_per_return=1)
        composer = ReturnComposer(mock_client, app_store)
        composer.load_policy()
        composer.load_sale("S-100")
        composer.add_item("si-1")

        with pytest.raises(PolicyViolationError, match="Max 1 items"):
            composer.add_item("si-2")

    def test_duplicate_sale_item(self, composer):
        composer.add_item("si-1")

        with pytest.raises(PolicyViolationError, match="already on the return"):
            composer.add_item("si-1")

    def test_item_not_in_sale(self, composer):
        with pytest.raises(PolicyViolationError, match="not part of sale S-100"):
            composer.add_item("si-9")

    def test_forbidden_resolution(self, mock_client, app_store):
        mock_client.get_return_policy.return_value = ReturnPolicy(allow_refund=False)
        composer = ReturnComposer(mock_client, app_store)
        composer.load_policy()
        composer.load_sale("S-100")
        composer.add_item("si-1")

        with pytest.raises(PolicyViolationError, match="Refund is not allowed"):
            composer.set_resolution(0, "refund")

    def test_refund_estimate_less_restocking_fee(self, mock_client, app_store):
        mock_client.get_return_policy.return_value = ReturnPolicy(restocking_fee=Decimal("2.50"))
        composer = ReturnComposer(mock_client, app_store)
        composer.load_policy()
        composer.load_sale("S-100")
        composer.add_item("si-1", 2)

        assert composer.refund_estimate() == Decimal("17.50")


class TestSubmit:
    def test_payload(self, composer, mock_client):
        composer.add_item("si-1", 1)
        composer.set_reason(0, "Too small")
        composer.set_resolution(0, "EXCHANGE")
        composer.set_exchange(0, "v-c")

        result = composer.submit()

        assert result.success
        token, body = mock_client.create_return.call_args.args
        assert token == result.token
        assert body == {
            "storeId": "store-1",
            "saleCode": "S-100",
            "staffId": "user-1",
            "items": [{
                "saleItemId": "si-1",
                "reason": "Too small",
                "exchanges": [{"newProductVariantId": "v-c", "quantity": 1}],
                "quantity": 1,
                "resolution": "EXCHANGE",
            }],
        }
        assert composer.items == []

    def test_quantity_above_purchase_rejected(self, composer, mock_client):
        composer.add_item("si-1", 3)
        composer.set_reason(0, "Damaged")
        composer.set_resolution(0, "REFUND")

        result = composer.submit()

        assert result.outcome == SubmissionOutcome.INVALID
        assert result.validation_errors.get("items[0].quantity") == "Only 2 unit(s) were purchased"
        mock_client.create_return.assert_not_called()

    def test_missing_reason_rejected(self, composer, mock_client):
        composer.add_item("si-2")
        composer.set_resolution(0, "STORE_CREDIT")

        result = composer.submit()

        assert result.validation_errors.get("items[0].reason") == "Reason is required"
        mock_client.create_return.assert_not_called()

    def test_nothing_picked(self, composer, mock_client):
        result = composer.submit()

        assert result.outcome == SubmissionOutcome.INVALID
        assert result.message == "Add at least one item to return."

    def test_switching_away_from_exchange_clears_exchanges(self, composer):
        composer.add_item("si-1")
        composer.set_resolution(0, "EXCHANGE")
        composer.set_exchange(0, "v-c", 1)

        composer.set_resolution(0, "REFUND")

        assert composer.items[0].exchanges == []

    def test_exchange_requires_exchange_resolution(self, composer):
        composer.add_item("si-1")
        composer.set_resolution(0, "REFUND")

        with pytest.raises(PolicyViolationError, match="resolved as EXCHANGE"):
            composer.set_exchange(0, "v-c")

        assert composer.items[0].exchanges == []


@pytest.fixture
def desk(mock_client, app_store):
    mock_client.list_returns.return_value = [
        ReturnRecord(id="r-1", sale_item_id="si-1", item_name="Tee Large", reason="Too small",
                     resolution="EXCHANGE", status=PENDING, quantity=1),
        ReturnRecord(id="r-2", sale_item_id="si-2", item_name="Socks", reason="Damaged",
                     resolution="REFUND", status=APPROVED, quantity=1),
    ]
    return ReturnDesk(mock_client, app_store)


class TestReturnDesk:
    def test_filter_by_status(self, desk, mock_client):
        assert [r.id for r in desk.returns("pending")] == ["r-1"]
        mock_client.list_returns.assert_called_with("store-1")

    def test_search_matches_item_or_reason(self, desk):
        assert [r.id for r in desk.returns(search="damaged")] == ["r-2"]
        assert [r.id for r in desk.returns(search="TEE")] == ["r-1"]

    def test_credits(self, desk, mock_client):
        credit = StoreCredit(id="c-1", customer_id="cu-1", return_id="r-1", amount=Decimal("20.00"),
                             used_amount=Decimal("5.00"), status="active")
        mock_client.list_store_credits.return_value = [credit]

        assert desk.credits() == [credit]

    def test_credits_unavailable(self, desk, mock_client):
        mock_client.list_store_credits.side_effect = NetworkError("Connection refused")

        assert desk.credits() == []

    def test_review_signed_by_current_user(self, desk, mock_client):
        mock_client.review_returns.return_value = {"message": "Returns reviewed"}

        desk.review(("r-1", "r-3"), approve=False)

        mock_client.review_returns.assert_called_once_with("store-1", ["r-1", "r-3"], False, "user-1")

    def test_review_nothing_selected(self, desk, mock_client):
        with pytest.raises(PolicyViolationError, match="No returns selected"):
            desk.review([], approve=True)

        mock_client.review_returns.assert_not_called()

    def test_policy_created_when_store_has_none(self, desk, mock_client):
        mock_client.get_return_policy.side_effect = NotFoundError("No return policy", status_code=404)
        policy = ReturnPolicy(days_allowed=14)
        mock_client.create_return_policy.return_value = policy

        assert desk.save_policy(policy) == policy

        mock_client.create_return_policy.assert_called_once_with("store-1", policy)
        mock_client.update_return_policy.assert_not_called()

    def test_existing_policy_updated(self, desk, mock_client):
        policy = ReturnPolicy(allow_refund=False)
        mock_client.update_return_policy.return_value = policy

        desk.save_policy(policy)

        mock_client.update_return_policy.assert_called_once_with("store-1", policy)
        mock_client.create_return_policy.assert_not_called()

    def test_negative_restocking_fee_rejected(self, desk, mock_client):
        with pytest.raises(FormValidationError):
            desk.save_policy(ReturnPolicy(restocking_fee=Decimal("-1")))

        mock_client.update_return_policy.assert_not_called()
        mock_client.create_return_policy.assert_not_called()
