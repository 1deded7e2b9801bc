"""Tests for the restock composer."""

import pytest

from stockpilot.models.product import StockStatus
from stockpilot.models.submission import SubmissionOutcome, SubmissionState
from stockpilot.services.restock_service import RestockComposer
from stockpilot.utils.exceptions import ConflictError, NetworkError


@pytest.fixture
def composer(mock_client, app_store, catalog, notifier):
    return RestockComposer(mock_client, app_store, catalog, notifier)


class TestRestock:
    def test_payload(self, composer, mock_client):
        composer.set_quantity("v-b", 20)

        result = composer.submit()

        assert result.success
        token, body = mock_client.restock.call_args.args
        assert token == result.token
        assert body["store_id"] == "store-1"
        assert body["business_id"] == "biz-1"
        assert body["restocked_by"] == "user-1"
        assert body["variants"] == [{"variant_id": "v-b", "quantity": 20}]
        assert body["reference"].startswith("RSTK-")

    def test_retry_reuses_token_across_failures(self, composer, mock_client):
        mock_client.restock.side_effect = [
            NetworkError("timeout"),
            NetworkError("timeout"),
            {"message": "Restock completed"},
        ]
        composer.set_quantity("v-b", 5)

        results = [composer.submit() for _ in range(3)]

        assert [r.outcome for r in results] == [
            SubmissionOutcome.FAILED, SubmissionOutcome.FAILED, SubmissionOutcome.SUBMITTED
        ]
        tokens = {c.args[0] for c in mock_client.restock.call_args_list}
        references = {c.args[1]["reference"] for c in mock_client.restock.call_args_list}
        assert len(tokens) == 1
        assert len(references) == 1
        assert mock_client.restock.call_count == 3

    def test_editing_between_failures_keeps_token(self, composer, mock_client):
        mock_client.restock.side_effect = [ConflictError("Variant locked", status_code=409), {}]
        composer.set_quantity("v-b", 5)
        composer.submit()

        composer.set_quantity("v-b", 6)
        composer.submit()

        first, second = mock_client.restock.call_args_list
        assert first.args[0] == second.args[0]
        assert second.args[1]["variants"] == [{"variant_id": "v-b", "quantity": 6}]

    def test_nothing_selected(self, composer, mock_client):
        result = composer.submit()

        assert result.outcome == SubmissionOutcome.INVALID
        assert result.message == "Select at least one variant to restock."
        mock_client.restock.assert_not_called()

    def test_negative_quantity_rejected(self, composer, mock_client):
        composer.set_quantity("v-b", -3)

        result = composer.submit()

        assert result.outcome == SubmissionOutcome.INVALID
        assert result.validation_errors.get("items[0].quantity")
        mock_client.restock.assert_not_called()

    def test_blank_quantity_removes_variant(self, composer):
        composer.set_quantity("v-b", 4)
        composer.set_quantity("v-b", "")

        assert composer.line_items() == []

    def test_reset_starts_new_intent(self, composer):
        composer.set_quantity("v-b", 4)
        token = composer.submitter.ensure_token()

        composer.reset()

        assert composer.line_items() == []
        assert composer.submitter.token != token
        assert composer.state == SubmissionState.IDLE


class TestPreview:
    def test_rows(self, composer):
        composer.set_quantity("v-b", 10)
        composer.set_quantity("v-unknown", 1)

        known, unknown = composer.preview()

        assert known["current"] == 3
        assert known["after"] == 13
        assert known["status"] == StockStatus.LOW_STOCK
        assert known["progress"] == 60
        assert unknown["current"] is None
