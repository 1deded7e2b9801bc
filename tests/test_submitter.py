"""Tests for the idempotent submitter state machine."""

import itertools

import pytest
from unittest.mock import MagicMock

from stockpilot.middleware.form_validator import FormSchema, FormValidator, positive_integer
from stockpilot.models.submission import SubmissionOutcome, SubmissionState
from stockpilot.services.submitter import IdempotentSubmitter, NETWORK_FAILURE
from stockpilot.utils.exceptions import (
    AuthenticationError,
    ConflictError,
    NetworkError,
    NotFoundError,
    StockPilotAPIError,
)
from stockpilot.utils.notifier import ERROR, LOADING, SUCCESS


@pytest.fixture
def tokens():
    counter = itertools.count(1)
    return lambda: f"tok-{next(counter)}"


@pytest.fixture
def send():
    return MagicMock(return_value={"message": "Sale created successfully"})


@pytest.fixture
def submitter(send, tokens, notifier):
    return IdempotentSubmitter(send, name="sale", notifier=notifier, token_factory=tokens)


class TestTokenLifecycle:
    """Tokens are created lazily, kept across failures and rotated after success."""

    def test_token_created_on_first_submit(self, submitter, send):
        assert submitter.token is None

        result = submitter.submit({"total": 25})

        assert result.success
        assert result.token == "tok-1"
        send.assert_called_once_with("tok-1", {"total": 25})
        assert submitter.state == SubmissionState.SUBMITTED

    def test_token_stable_under_failure(self, submitter, send):
        send.side_effect = [NetworkError("timeout"), NetworkError("timeout"), {"message": "ok"}]

        first = submitter.submit({"total": 25})
        second = submitter.submit({"total": 25})
        third = submitter.submit({"total": 25})

        assert first.outcome == SubmissionOutcome.FAILED
        assert second.outcome == SubmissionOutcome.FAILED
        assert third.success
        assert [c.args[0] for c in send.call_args_list] == ["tok-1", "tok-1", "tok-1"]

    def test_failure_returns_to_idle(self, submitter, send):
        send.side_effect = ConflictError("Insufficient stock for TEE-A", status_code=409)

        result = submitter.submit({"total": 25})

        assert submitter.state == SubmissionState.IDLE
        assert result.message == "Insufficient stock for TEE-A"
        assert result.error_type == "ConflictError"
        assert result.status_code == 409
        assert not result.retryable

    def test_network_failure_message_keeps_entries(self, submitter, send):
        send.side_effect = NetworkError("connection reset")

        result = submitter.submit({"total": 25})

        assert result.message == NETWORK_FAILURE
        assert submitter.token == "tok-1"

    def test_not_found_is_not_retryable(self, submitter, send):
        send.side_effect = NotFoundError("Variant not found", status_code=404)

        result = submitter.submit({"total": 25})

        assert result.outcome == SubmissionOutcome.FAILED
        assert not result.retryable

    def test_server_error_is_retryable(self, submitter, send):
        send.side_effect = StockPilotAPIError("Bad gateway", status_code=502)

        assert submitter.submit({"total": 25}).retryable

    def test_rejected_credentials_not_retryable(self, submitter, send):
        send.side_effect = AuthenticationError("Token expired", status_code=401)

        assert not submitter.submit({"total": 25}).retryable

    def test_unexpected_exception_becomes_failed_result(self, submitter, send):
        send.side_effect = RuntimeError("boom")

        result = submitter.submit({"total": 25})

        assert result.outcome == SubmissionOutcome.FAILED
        assert result.message == "Submit failed. Please try again."
        assert submitter.state == SubmissionState.IDLE

    def test_rotated_after_success_and_edit(self, submitter):
        submitter.submit({"total": 25})
        assert submitter.state == SubmissionState.SUBMITTED

        submitter.edit()

        assert submitter.state == SubmissionState.IDLE
        assert submitter.token == "tok-2"

    def test_no_token_churn_while_composing(self, submitter):
        token = submitter.ensure_token()

        for _ in range(5):
            submitter.edit()

        assert submitter.token == token
        assert submitter.state == SubmissionState.IDLE

    def test_edit_not_affecting_payload_keeps_submitted(self, submitter):
        submitter.submit({"total": 25})

        submitter.edit(affects_payload=False)

        assert submitter.state == SubmissionState.SUBMITTED
        assert submitter.token == "tok-1"

    def test_reset_starts_new_intent(self, submitter):
        submitter.ensure_token()

        submitter.reset()

        assert submitter.token == "tok-2"
        assert submitter.state == SubmissionState.IDLE

    def test_resume_with_existing_token(self, send, tokens):
        submitter = IdempotentSubmitter(send, token_factory=tokens, token="restored")

        submitter.submit({})

        send.assert_called_once_with("restored", {})


class TestDoubleSubmit:
    """Nothing is dispatched twice for one intent."""

    def test_submit_after_success_is_duplicate(self, submitter, send):
        submitter.submit({"total": 25})

        result = submitter.submit({"total": 25})

        assert result.outcome == SubmissionOutcome.DUPLICATE
        assert not result.dispatched
        assert send.call_count == 1

    def test_reentrant_submit_while_in_flight(self, tokens):
        nested = []

        def send(token, payload):
            nested.append(submitter.submit(payload))
            assert submitter.state == SubmissionState.SUBMITTING
            return {"message": "done"}

        submitter = IdempotentSubmitter(send, token_factory=tokens)

        result = submitter.submit({"total": 25})

        assert result.success
        assert len(nested) == 1
        assert nested[0].outcome == SubmissionOutcome.IN_FLIGHT
        assert nested[0].token == "tok-1"
        assert submitter.token == "tok-1"
        assert not submitter.can_submit

    def test_edit_while_in_flight_rotates_on_success(self, tokens):
        def send(token, payload):
            submitter.edit()
            assert submitter.token == token
            return {}

        submitter = IdempotentSubmitter(send, token_factory=tokens)

        result = submitter.submit({"total": 25})

        assert result.token == "tok-1"
        assert submitter.state == SubmissionState.IDLE
        assert submitter.token == "tok-2"

    def test_edit_while_in_flight_then_failure_keeps_token(self, tokens):
        def send(token, payload):
            submitter.edit()
            raise NetworkError("timeout")

        submitter = IdempotentSubmitter(send, token_factory=tokens)

        submitter.submit({"total": 25})

        assert submitter.state == SubmissionState.IDLE
        assert submitter.token == "tok-1"


class TestValidationGate:
    """Invalid forms never reach ``send``."""

    @pytest.fixture
    def validator(self):
        return FormValidator(FormSchema(
            items_path="items",
            item_rules={"quantity": [positive_integer("Quantity must be positive")]},
            empty_items_message="Add at least one item",
        ))

    def test_invalid_form_not_dispatched(self, send, tokens, validator, notifier):
        submitter = IdempotentSubmitter(send, validator=validator, notifier=notifier, token_factory=tokens)

        result = submitter.submit({"items": []})

        assert result.outcome == SubmissionOutcome.INVALID
        assert result.message == "Add at least one item"
        assert result.validation_errors.global_error == "Add at least one item"
        send.assert_not_called()
        assert submitter.state == SubmissionState.IDLE
        assert notifier.last()[2] == ERROR

    def test_form_checked_instead_of_payload(self, send, tokens, validator):
        submitter = IdempotentSubmitter(send, validator=validator, token_factory=tokens)

        result = submitter.submit({"body": 1}, form={"items": [{"quantity": 2}]})

        assert result.success
        send.assert_called_once_with("tok-1", {"body": 1})


class TestNotifications:
    def test_loading_message_updated_with_success(self, submitter, notifier):
        submitter.submit({"total": 25})

        first_id, first_message, first_level = notifier.history[0]
        assert first_level == LOADING
        assert notifier.current[first_id] == ("Sale created successfully", SUCCESS)

    def test_loading_message_updated_with_error(self, submitter, send, notifier):
        send.side_effect = ConflictError("Stock changed", status_code=409)

        submitter.submit({"total": 25})

        first_id = notifier.history[0][0]
        assert notifier.current[first_id] == ("Stock changed", ERROR)

    def test_refresh_failure_does_not_change_outcome(self, send, tokens):
        on_success = MagicMock(side_effect=RuntimeError("refresh failed"))
        submitter = IdempotentSubmitter(send, on_success=on_success, token_factory=tokens)

        result = submitter.submit({"total": 25})

        assert result.success
        on_success.assert_called_once_with({"message": "Sale created successfully"})
