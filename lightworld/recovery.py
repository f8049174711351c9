"""
Password Recovery Flow
======================

One controller for the whole "forgot password" journey:

    EMAIL -> OTP -> NEW_PASSWORD -> SUCCESS

The controller owns the per-attempt RecoverySession, talks to three backend
operations (request reset, verify code, reset password) and runs two
background tasks on the event loop: the one-second code countdown and the
delayed redirect to login after success. Both are cancelled by close().

Stages only move forward one step at a time. The single exception is
go_back_to_email(), which throws the attempt away and starts over. Responses
that arrive after go_back_to_email() or close() belong to a superseded
attempt and are dropped.

Usage:
    async with LightWorldClient(config.api_base_url) as client:
        flow = RecoveryFlow.for_client(client, on_complete=open_login)
        await flow.submit_email("user@example.com")
        for index, digit in enumerate("123456"):
            flow.edit_otp_digit(index, digit)
        await flow.submit_otp()
        await flow.submit_new_password("new-secret", "new-secret")
        ...
        await flow.close()
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, FrozenSet, List, Optional

from lightworld.api import ApiResult, LightWorldClient
from lightworld.config import CLIConfig
from lightworld.exceptions import InvalidTransitionError
from lightworld.logging_config import logger, generate_session_id, set_session_id, set_user_email
from lightworld.validation import validate_email, is_otp_digit, validate_password_pair


class Stage(str, Enum):
    """Recovery stages, in the only order they may be visited"""
    EMAIL = "email"
    OTP = "otp"
    NEW_PASSWORD = "new_password"
    SUCCESS = "success"


STAGE_ORDER = [Stage.EMAIL, Stage.OTP, Stage.NEW_PASSWORD, Stage.SUCCESS]

GENERIC_ERROR = "Something went wrong. Please try again."

RequestReset = Callable[[str], Awaitable[ApiResult]]
VerifyOtp = Callable[[str, str], Awaitable[ApiResult]]
ResetPassword = Callable[[str, str, str], Awaitable[ApiResult]]


@dataclass
class RecoveryPolicy:
    """Knobs that differ between entry points or deployments"""
    otp_length: int = 6
    otp_ttl_seconds: int = 120
    min_password_length: int = 8
    redirect_delay: float = 2.0  # seconds on the success screen before login
    tick_interval: float = 1.0
    allow_back_from: FrozenSet[Stage] = frozenset({Stage.OTP, Stage.NEW_PASSWORD})

    @classmethod
    def from_config(cls, config: CLIConfig, **overrides) -> "RecoveryPolicy":
        values = {
            "otp_ttl_seconds": config.otp_ttl_seconds,
            "min_password_length": config.min_password_length,
        }
        values.update(overrides)
        return cls(**values)


@dataclass
class RecoverySession:
    """State of one recovery attempt. Never persisted."""
    stage: Stage = Stage.EMAIL
    email: str = ""
    otp_digits: List[str] = field(default_factory=lambda: [""] * 6)
    seconds_remaining: int = 120
    new_password: str = ""
    confirm_password: str = ""
    error_message: str = ""
    is_submitting: bool = False
    focus_index: int = 0

    @property
    def otp_code(self) -> str:
        return "".join(self.otp_digits)

    @property
    def otp_complete(self) -> bool:
        return all(self.otp_digits)

    @property
    def can_resend(self) -> bool:
        return self.stage == Stage.OTP and self.seconds_remaining == 0


class RecoveryFlow:
    """
    Drives a RecoverySession through the recovery stages.

    The three endpoint callables take the same arguments as the matching
    LightWorldClient methods and return an ApiResult. They may also raise;
    anything raised is shown to the user like a backend error.

    on_complete is called exactly once, redirect_delay seconds after the
    password was reset, unless the flow is closed first. It may be a plain
    function or a coroutine function.
    """

    def __init__(
        self,
        request_reset: RequestReset,
        verify_otp: VerifyOtp,
        reset_password: ResetPassword,
        on_complete: Optional[Callable[[], Any]] = None,
        policy: Optional[RecoveryPolicy] = None
    ):
        self.policy = policy or RecoveryPolicy()
        self._request_reset = request_reset
        self._verify_otp = verify_otp
        self._reset_password = reset_password
        self._on_complete = on_complete

        self.session = self._new_session()
        self.session_id = generate_session_id()
        set_session_id(self.session_id)

        # Bumped whenever an attempt is abandoned; responses from older
        # generations are dropped.
        self._generation = 0
        self._closed = False
        self._redirected = False
        self._countdown_task: Optional[asyncio.Task] = None
        self._redirect_task: Optional[asyncio.Task] = None

    @classmethod
    def for_client(cls, client: LightWorldClient, **kwargs) -> "RecoveryFlow":
        """Build a flow wired to a LightWorldClient's recovery endpoints"""
        return cls(
            client.request_password_reset,
            client.verify_otp,
            client.reset_password,
            **kwargs
        )

    async def __aenter__(self) -> "RecoveryFlow":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ==================== State helpers ====================

    @property
    def stage(self) -> Stage:
        return self.session.stage

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def redirected(self) -> bool:
        return self._redirected

    @property
    def can_submit_otp(self) -> bool:
        return (
            self.session.stage == Stage.OTP
            and self.session.otp_complete
            and not self.session.is_submitting
        )

    @property
    def can_go_back(self) -> bool:
        stage = self.session.stage
        return not self._closed and (stage == Stage.EMAIL or stage in self.policy.allow_back_from)

    def _new_session(self) -> RecoverySession:
        return RecoverySession(
            otp_digits=[""] * self.policy.otp_length,
            seconds_remaining=self.policy.otp_ttl_seconds,
        )

    def _busy(self, stage: Stage) -> bool:
        return self._closed or self.session.stage != stage or self.session.is_submitting

    def _transition(self, target: Stage) -> None:
        current = self.session.stage
        if STAGE_ORDER.index(target) != STAGE_ORDER.index(current) + 1:
            raise InvalidTransitionError(current.value, target.value)

        self.session.stage = target
        self.session.error_message = ""
        logger.log_stage_change(current.value, target.value)

        if target == Stage.OTP:
            self._restart_code_entry()
        else:
            self._stop_countdown()

        if target == Stage.SUCCESS:
            self._schedule_redirect()

    def _restart_code_entry(self) -> None:
        self.session.otp_digits = [""] * self.policy.otp_length
        self.session.seconds_remaining = self.policy.otp_ttl_seconds
        self.session.focus_index = 0
        self._start_countdown()

    def _fail(self, message: str) -> None:
        self.session.error_message = message or GENERIC_ERROR

    async def _call(self, operation: str, endpoint: Callable[..., Awaitable[ApiResult]],
                    *args: str) -> Optional[ApiResult]:
        """
        Run one backend call with is_submitting held.

        Returns None when the attempt was abandoned while the call was in
        flight; the caller must then leave the session alone.
        """
        generation = self._generation
        self.session.is_submitting = True
        try:
            result = await endpoint(*args)
        except Exception as e:
            logger.log_error_with_context(e, context=operation)
            result = ApiResult.failure(str(e) or GENERIC_ERROR)
        finally:
            if generation == self._generation:
                self.session.is_submitting = False

        if generation != self._generation:
            logger.info(
                f"Discarding stale {operation} response",
                extra={"operation": operation}
            )
            return None

        if not result.ok:
            logger.warning(
                f"{operation} refused: {result.message}",
                extra={"operation": operation, "http_status": result.status_code}
            )
        return result

    # ==================== Email stage ====================

    async def submit_email(self, email: str) -> bool:
        """Validate the address and ask the backend to send a code"""
        if self._busy(Stage.EMAIL):
            return False

        email = email.strip()
        self.session.email = email
        self.session.error_message = ""

        error = validate_email(email)
        if error:
            self._fail(error)
            return False

        set_user_email(email)
        result = await self._call("request_reset", self._request_reset, email)
        if result is None:
            return False
        if not result.ok:
            self._fail(result.message)
            return False

        self._transition(Stage.OTP)
        return True

    def begin_at_otp(self, email: str) -> bool:
        """
        Enter the OTP stage for a code that was already sent.

        Used when the user arrives with a code in hand; no request is made.
        Must be called from a running event loop (it starts the countdown).
        """
        if self._busy(Stage.EMAIL):
            return False

        email = email.strip()
        self.session.email = email
        error = validate_email(email)
        if error:
            self._fail(error)
            return False

        set_user_email(email)
        self._transition(Stage.OTP)
        return True

    # ==================== OTP stage ====================

    def edit_otp_digit(self, index: int, value: str) -> bool:
        """
        Store one digit of the code.

        Anything other than an empty string or a single digit is ignored.
        A digit moves focus to the next box.
        """
        if self._closed or self.session.stage != Stage.OTP:
            return False
        if not 0 <= index < self.policy.otp_length:
            raise IndexError(f"OTP digit index {index} out of range")
        if len(value) > 1 or not is_otp_digit(value):
            return False

        self.session.otp_digits[index] = value
        self.session.error_message = ""
        if value and index < self.policy.otp_length - 1:
            self.session.focus_index = index + 1
        else:
            self.session.focus_index = index
        return True

    def handle_backspace(self, index: int) -> int:
        """Backspace on an empty box moves focus back one; returns the focus"""
        if (
            self.session.stage == Stage.OTP
            and 0 < index < self.policy.otp_length
            and not self.session.otp_digits[index]
        ):
            self.session.focus_index = index - 1
        return self.session.focus_index

    async def submit_otp(self) -> bool:
        if self._busy(Stage.OTP):
            return False

        code = self.session.otp_code
        if len(code) != self.policy.otp_length:
            self._fail(f"Please enter the complete {self.policy.otp_length}-digit code")
            return False

        result = await self._call("verify_otp", self._verify_otp, self.session.email, code)
        if result is None:
            return False
        if not result.ok:
            self._fail(result.message)
            return False

        self._transition(Stage.NEW_PASSWORD)
        return True

    async def resend(self) -> bool:
        """Request a fresh code; only allowed once the countdown hit zero"""
        if self._busy(Stage.OTP) or not self.session.can_resend:
            return False

        self.session.error_message = ""
        result = await self._call("resend", self._request_reset, self.session.email)
        if result is None:
            return False
        if not result.ok:
            self._fail(result.message)
            return False

        logger.info("Verification code resent")
        self._restart_code_entry()
        return True

    # ==================== New password stage ====================

    async def submit_new_password(self, password: str, confirm: str) -> bool:
        if self._busy(Stage.NEW_PASSWORD):
            return False

        self.session.new_password = password
        self.session.confirm_password = confirm
        self.session.error_message = ""

        error = validate_password_pair(password, confirm, self.policy.min_password_length)
        if error:
            self._fail(error)
            return False

        result = await self._call(
            "reset_password", self._reset_password,
            self.session.email, password, confirm
        )
        if result is None:
            return False
        if not result.ok:
            self._fail(result.message)
            return False

        self._transition(Stage.SUCCESS)
        return True

    # ==================== Start over / teardown ====================

    def go_back_to_email(self) -> bool:
        """Abandon the attempt and return to a blank email stage"""
        if not self.can_go_back:
            return False

        previous = self.session.stage
        self._generation += 1
        self._stop_countdown()
        self.session = self._new_session()

        if previous != Stage.EMAIL:
            logger.log_stage_change(previous.value, Stage.EMAIL.value, reason="go_back")
        return True

    async def close(self) -> None:
        """Cancel background tasks and drop any response still in flight"""
        if self._closed:
            return
        self._closed = True
        self._generation += 1

        current = asyncio.current_task()
        tasks = [
            task for task in (self._countdown_task, self._redirect_task)
            if task is not None and not task.done() and task is not current
        ]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._countdown_task = None
        self._redirect_task = None
        logger.debug("Recovery session closed")

    # ==================== Background tasks ====================

    def _start_countdown(self) -> None:
        self._stop_countdown()
        self._countdown_task = asyncio.create_task(self._run_countdown())

    def _stop_countdown(self) -> None:
        if self._countdown_task is not None and not self._countdown_task.done():
            self._countdown_task.cancel()
        self._countdown_task = None

    async def _run_countdown(self) -> None:
        while self.session.stage == Stage.OTP and self.session.seconds_remaining > 0:
            await asyncio.sleep(self.policy.tick_interval)
            if self.session.stage != Stage.OTP:
                break
            self.session.seconds_remaining -= 1

        if self.session.stage == Stage.OTP:
            logger.info("Verification code expired")

    def _schedule_redirect(self) -> None:
        self._redirect_task = asyncio.create_task(self._redirect_after_delay())

    async def _redirect_after_delay(self) -> None:
        await asyncio.sleep(self.policy.redirect_delay)
        if self._closed or self._redirected:
            return

        self._redirected = True
        logger.info("Password reset complete, redirecting to login")
        if self._on_complete is None:
            return

        try:
            outcome = self._on_complete()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            # Nobody awaits this task, so report here
            logger.log_error_with_context(e, context="redirect")
