"""Idempotent submission of sales, restocks and returns.

One :class:`IdempotentSubmitter` guards one user intent. The intent's
token travels with every request so the backend can deduplicate retries:

    Idle --submit--> Submitting --success--> Submitted
                     Submitting --failure--> Idle          (same token)
    Submitted --payload edit--> Idle                       (new token)

A submit while ``Submitting`` or ``Submitted`` dispatches nothing.
"""

import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..middleware.form_validator import FormValidator
from ..models.submission import SubmissionOutcome, SubmissionResult, SubmissionState
from ..utils.exceptions import BaseAppException, NetworkError, NotFoundError
from ..utils.logger import get_submit_logger, get_error_logger
from ..utils.notifier import Notifier, ERROR, INFO, LOADING, SUCCESS

GENERIC_FAILURE = "Submit failed. Please try again."
NETWORK_FAILURE = "Could not reach the server. Your entries are kept; submit again to retry."

# Sends ``payload`` under ``token``; returns the parsed response body.
SendFn = Callable[[str, Dict[str, Any]], Dict[str, Any]]


def new_token() -> str:
    return str(uuid.uuid4())


@dataclass
class MutationIntent:
    """The token and last payload of one business action."""

    token: Optional[str] = None
    submitted: bool = False
    payload: Dict[str, Any] = field(default_factory=dict)


class IdempotentSubmitter:
    """At-most-once submission of one intent at a time."""

    def __init__(
        self,
        send: SendFn,
        name: str = "submission",
        validator: Optional[FormValidator] = None,
        notifier: Optional[Notifier] = None,
        on_success: Optional[Callable[[Dict[str, Any]], None]] = None,
        token_factory: Callable[[], str] = new_token,
        token: Optional[str] = None,
    ):
        """
        Args:
            send: Performs the request; raises on failure
            name: Human name of the action ("sale", "restock", ...) for messages
            validator: Form gate run before every dispatch
            notifier: Where progress and outcome messages go
            on_success: Refreshes local lists with the server's response
            token_factory: Token generator (UUID4 by default)
            token: Existing token to resume an intent with
        """
        self._send = send
        self.name = name
        self.validator = validator
        self.notifier = notifier
        self.on_success = on_success
        self._token_factory = token_factory

        self._lock = threading.Lock()
        self._intent = MutationIntent(token=token)
        self._state = SubmissionState.IDLE
        self._edited_in_flight = False

        self.logger = get_submit_logger()
        self.error_logger = get_error_logger()

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SubmissionState:
        return self._state

    @property
    def token(self) -> Optional[str]:
        return self._intent.token

    @property
    def intent(self) -> MutationIntent:
        with self._lock:
            return MutationIntent(
                token=self._intent.token,
                submitted=self._intent.submitted,
                payload=dict(self._intent.payload),
            )

    @property
    def can_submit(self) -> bool:
        """Whether the submit control should be enabled."""
        return self._state == SubmissionState.IDLE

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def ensure_token(self) -> str:
        """Return the intent's token, creating it if this is the first use."""
        with self._lock:
            return self._ensure_token_locked()

    def _ensure_token_locked(self) -> str:
        if not self._intent.token:
            self._intent.token = self._token_factory()
            self.logger.debug(f"New {self.name} intent {self._intent.token}")
        return self._intent.token

    def _rotate_locked(self) -> None:
        previous = self._intent.token
        self._intent = MutationIntent(token=self._token_factory())
        self._state = SubmissionState.IDLE
        self._edited_in_flight = False
        self.logger.info(f"{self.name.capitalize()} intent {previous} closed; new intent {self._intent.token}")

    def edit(self, affects_payload: bool = True) -> None:
        """
        Record a user edit.

        Only an edit to a payload-affecting field after a successful submit
        opens a new intent. While composing (``Idle``) the token is kept so a
        retry after a failure still deduplicates; while ``Submitting`` the
        edit is remembered and applied once the request succeeds.
        """
        if not affects_payload:
            return
        with self._lock:
            if self._state == SubmissionState.SUBMITTED:
                self._rotate_locked()
            elif self._state == SubmissionState.SUBMITTING:
                self._edited_in_flight = True

    def reset(self) -> None:
        """Discard the current intent and start a new one."""
        with self._lock:
            if self._state == SubmissionState.SUBMITTING:
                self._edited_in_flight = True
                return
            self._rotate_locked()

    def submit(self, payload: Dict[str, Any], form: Optional[Dict[str, Any]] = None) -> SubmissionResult:
        """
        Validate and dispatch ``payload`` under the intent's token.

        Args:
            payload: Request body (the token is passed to ``send`` separately)
            form: Data handed to the validator; defaults to ``payload``

        Returns:
            SubmissionResult describing what happened; never raises for
            validation or remote errors
        """
        with self._lock:
            if self._state == SubmissionState.SUBMITTING:
                self.logger.warning(f"Ignoring {self.name} submit: request already in flight ({self._intent.token})")
                return SubmissionResult(
                    outcome=SubmissionOutcome.IN_FLIGHT,
                    token=self._intent.token,
                    message=f"This {self.name} is already being submitted.",
                )
            if self._state == SubmissionState.SUBMITTED:
                self.logger.info(f"Ignoring duplicate {self.name} submit ({self._intent.token})")
                self._notify(f"This {self.name} has already been submitted.", INFO)
                return SubmissionResult(
                    outcome=SubmissionOutcome.DUPLICATE,
                    token=self._intent.token,
                    message=f"This {self.name} has already been submitted.",
                )

            if self.validator is not None:
                outcome = self.validator.validate(form if form is not None else payload)
                if not outcome.is_valid:
                    messages = outcome.errors.messages()
                    message = outcome.errors.global_error or (
                        f"Please fix {len(messages)} field(s) before submitting."
                    )
                    self._notify(message, ERROR)
                    return SubmissionResult(
                        outcome=SubmissionOutcome.INVALID,
                        token=self._intent.token,
                        message=message,
                        validation_errors=outcome.errors,
                    )

            token = self._ensure_token_locked()
            self._intent.payload = dict(payload)
            self._state = SubmissionState.SUBMITTING

        # The request runs unlocked so a re-entrant submit sees SUBMITTING.
        notification_id = self._notify(f"Submitting {self.name}...", LOADING)
        self.logger.info(f"Submitting {self.name} with token {token}")

        try:
            response = self._send(token, payload) or {}
        except BaseAppException as e:
            return self._fail(token, e, notification_id)
        except Exception as e:
            self.error_logger.error(f"Unexpected error submitting {self.name} {token}: {str(e)}", exc_info=True)
            return self._fail(token, e, notification_id)

        with self._lock:
            self._intent.submitted = True
            self._state = SubmissionState.SUBMITTED
            if self._edited_in_flight:
                self._rotate_locked()

        message = response.get("message") or f"{self.name.capitalize()} created successfully"
        self._notify(message, SUCCESS, notification_id)
        self.logger.info(f"{self.name.capitalize()} {token} accepted: {message}")

        if self.on_success is not None:
            try:
                self.on_success(response)
            except Exception as e:
                # The submission stands; only the local refresh failed.
                self.logger.warning(f"Refresh after {self.name} {token} failed: {str(e)}")

        return SubmissionResult(
            outcome=SubmissionOutcome.SUBMITTED,
            token=token,
            message=message,
            resource=response,
            dispatched=True,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fail(self, token: str, error: Exception, notification_id: Optional[int]) -> SubmissionResult:
        with self._lock:
            # Token kept: the next attempt replays the same intent.
            self._state = SubmissionState.IDLE
            self._edited_in_flight = False

        if isinstance(error, NetworkError):
            message = NETWORK_FAILURE
        elif isinstance(error, BaseAppException):
            message = error.message or GENERIC_FAILURE
        else:
            message = GENERIC_FAILURE

        self._notify(message, ERROR, notification_id)
        self.logger.warning(f"{self.name.capitalize()} {token} failed ({type(error).__name__}): {message}")
        if isinstance(error, NotFoundError):
            self.logger.info(f"{self.name.capitalize()} {token} references an entity that no longer exists")

        return SubmissionResult(
            outcome=SubmissionOutcome.FAILED,
            token=token,
            message=message,
            error_type=type(error).__name__,
            status_code=getattr(error, "status_code", None),
            dispatched=True,
        )

    def _notify(self, message: str, level: str, notification_id: Optional[int] = None) -> Optional[int]:
        if self.notifier is None:
            return None
        if notification_id is not None:
            self.notifier.update(notification_id, message, level)
            return notification_id
        return self.notifier.show(message, level)
