"""
Register / login / two-factor state machine.

One ``AuthSession`` covers exactly one attempt:

    IDLE -> CREDENTIALS_SUBMITTED -> AUTHENTICATED
                                  -> AWAITING_CODE -> AUTHENTICATED | REJECTED
                                  -> REJECTED
    (registration ends in REGISTERED or REJECTED)

Credential store and SMS calls run on the controller's single background
worker; the coroutine resumes on the caller's event loop. An authenticated
session only yields the email. Turning it into a session token is up to the
caller.
"""

from __future__ import annotations

import asyncio
import functools
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from uuid import uuid4

from loguru import logger

from config import AppConfig

from .codes import generate_code
from .errors import (
    AlreadyExists,
    HashingFailure,
    InvalidStateError,
    NotFound,
    StorageFailure,
)
from .validation import MESSAGES, InputProblem, check_login, check_registration


class AuthState(str, Enum):
    IDLE = "idle"
    CREDENTIALS_SUBMITTED = "credentials_submitted"
    AWAITING_CODE = "awaiting_code"
    AUTHENTICATED = "authenticated"
    REGISTERED = "registered"
    REJECTED = "rejected"


TERMINAL_STATES = {AuthState.AUTHENTICATED, AuthState.REGISTERED, AuthState.REJECTED}


class RejectionReason(str, Enum):
    INVALID_INPUT = "invalid_input"
    USER_EXISTS = "user_exists"
    BAD_CREDENTIALS = "bad_credentials"
    BAD_CODE = "bad_code"
    STORAGE_FAILURE = "storage_failure"
    CANCELLED = "cancelled"


REJECTION_MESSAGES = {
    RejectionReason.USER_EXISTS: "User already exists - Please log in",
    # same text for unknown email and wrong password
    RejectionReason.BAD_CREDENTIALS: "Invalid email or password",
    RejectionReason.BAD_CODE: "Incorrect verification code",
    RejectionReason.STORAGE_FAILURE: "Something went wrong, please try again",
    RejectionReason.CANCELLED: "Verification cancelled",
}


class PromptOutcome(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    INPUT = "input"


@dataclass(frozen=True)
class PromptResult:
    """What came back from asking the user for their verification code."""

    outcome: PromptOutcome
    value: str = ""

    @classmethod
    def confirmed(cls, value: str) -> "PromptResult":
        return cls(PromptOutcome.CONFIRMED, value)

    @classmethod
    def entered(cls, value: str) -> "PromptResult":
        return cls(PromptOutcome.INPUT, value)

    @classmethod
    def cancelled(cls) -> "PromptResult":
        return cls(PromptOutcome.CANCELLED)


@dataclass
class VerificationChallenge:
    email: str
    code: str
    challenge_id: str = field(default_factory=lambda: uuid4().hex)
    issued_at: float = field(default_factory=time.monotonic)
    attempts: int = 0

    def expired(self, ttl_seconds: int) -> bool:
        return ttl_seconds > 0 and time.monotonic() - self.issued_at > ttl_seconds


@dataclass(frozen=True)
class AuthOutcome:
    state: AuthState
    email: Optional[str] = None
    reason: Optional[RejectionReason] = None
    problem: Optional[InputProblem] = None
    message: str = ""
    challenge_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state in (AuthState.AUTHENTICATED, AuthState.REGISTERED)


class AuthSession:
    """A single register or login attempt. Not reusable."""

    def __init__(self, controller: "AuthSessionController"):
        self._controller = controller
        self.state = AuthState.IDLE
        self._challenge: Optional[VerificationChallenge] = None
        self._discarded = False

    @property
    def challenge_id(self) -> Optional[str]:
        return self._challenge.challenge_id if self._challenge else None

    @property
    def email(self) -> Optional[str]:
        return self._challenge.email if self._challenge else None

    @property
    def expired(self) -> bool:
        return self._challenge is not None and self._challenge.expired(self._controller.code_ttl_seconds)

    def discard(self) -> None:
        """Owner went away; in-flight work finishes but its result is dropped."""
        self._discarded = True
        self._challenge = None

    def _submit(self) -> None:
        if self.state != AuthState.IDLE:
            raise InvalidStateError(f"Session already used (state={self.state.value})")
        self.state = AuthState.CREDENTIALS_SUBMITTED

    def _finish(self, state: AuthState, email=None, reason=None, problem=None, message="") -> AuthOutcome:
        if self._discarded:
            state, reason, message = AuthState.REJECTED, RejectionReason.CANCELLED, ""
        self.state = state
        if state in TERMINAL_STATES:
            self._challenge = None
        if reason is not None and not message:
            message = REJECTION_MESSAGES.get(reason, "")
        return AuthOutcome(
            state=state,
            email=email,
            reason=reason,
            problem=problem,
            message=message,
            challenge_id=self.challenge_id,
        )

    def _invalid(self, problem: InputProblem, message=None) -> AuthOutcome:
        return self._finish(
            AuthState.REJECTED,
            reason=RejectionReason.INVALID_INPUT,
            problem=problem,
            message=message or MESSAGES[problem],
        )

    async def register(self, email: str, password: str, confirm_password: str, phone: str) -> AuthOutcome:
        self._submit()
        problem = check_registration(email, password, confirm_password, phone)
        if problem is not None:
            return self._invalid(problem)

        store = self._controller.credential_store
        try:
            await self._controller.run(store.create_account, email, password, phone)
        except AlreadyExists:
            return self._finish(AuthState.REJECTED, reason=RejectionReason.USER_EXISTS)
        except (HashingFailure, StorageFailure) as e:
            logger.error(f"Signup failed for {email}: {e}")
            return self._finish(AuthState.REJECTED, reason=RejectionReason.STORAGE_FAILURE)

        # back to the login form; registering does not log in
        return self._finish(AuthState.REGISTERED, email=email, message="Signup successful")

    async def login(self, email: str, password: str, sms_enabled: bool) -> AuthOutcome:
        self._submit()
        if check_login(email, password) is not None:
            return self._invalid(InputProblem.MISSING_FIELDS, "Email and password are required")

        try:
            challenge = await self._controller.run(
                self._controller.check_login, email, password, sms_enabled
            )
        except StorageFailure as e:
            logger.error(f"Login failed for {email}: {e}")
            return self._finish(AuthState.REJECTED, reason=RejectionReason.STORAGE_FAILURE)

        if challenge is False:
            return self._finish(AuthState.REJECTED, reason=RejectionReason.BAD_CREDENTIALS)
        if challenge is None:
            return self._finish(AuthState.AUTHENTICATED, email=email)

        if not self._discarded:
            self._challenge = challenge
        return self._finish(AuthState.AWAITING_CODE, message="Enter Verification Code")

    async def submit_code(self, prompt: PromptResult) -> AuthOutcome:
        if self.state != AuthState.AWAITING_CODE or self._challenge is None:
            raise InvalidStateError(f"No verification code pending (state={self.state.value})")

        challenge = self._challenge
        if prompt.outcome == PromptOutcome.CANCELLED:
            return self._finish(AuthState.REJECTED, reason=RejectionReason.CANCELLED)

        if challenge.expired(self._controller.code_ttl_seconds):
            return self._finish(
                AuthState.REJECTED,
                reason=RejectionReason.BAD_CODE,
                message="Verification code expired",
            )

        challenge.attempts += 1
        if prompt.value == challenge.code:
            return self._finish(AuthState.AUTHENTICATED, email=challenge.email)

        if challenge.attempts < self._controller.code_max_attempts:
            return self._finish(AuthState.AWAITING_CODE, message=REJECTION_MESSAGES[RejectionReason.BAD_CODE])
        return self._finish(AuthState.REJECTED, reason=RejectionReason.BAD_CODE)


class AuthSessionController:
    """Owns the background worker and the collaborators shared by sessions."""

    def __init__(self, credential_store, gateway, code_max_attempts=None, code_ttl_seconds=None):
        self.credential_store = credential_store
        self.gateway = gateway
        self.code_max_attempts = max(1, code_max_attempts or AppConfig.CODE_MAX_ATTEMPTS)
        self.code_ttl_seconds = (
            code_ttl_seconds if code_ttl_seconds is not None else AppConfig.CODE_TTL_SECONDS
        )
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="auth-worker")

    def new_session(self) -> AuthSession:
        return AuthSession(self)

    async def run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args))

    async def drain(self) -> None:
        """Wait until everything queued on the worker so far has run."""
        await self.run(lambda: None)

    def shutdown(self, wait=True) -> None:
        self._executor.shutdown(wait=wait)

    # --- worker-side steps ---

    def check_login(self, email, password, sms_enabled):
        """
        Runs on the worker. Returns False for bad credentials, None when no
        second factor is needed, else the issued challenge.
        """
        store = self.credential_store
        if not store.verify_credentials(email, password):
            return False
        if not (sms_enabled and store.is_two_factor_enabled(email)):
            return None

        try:
            phone = store.get_phone_number(email)
        except NotFound as e:
            raise StorageFailure(f"Account {email} vanished during login") from e

        challenge = VerificationChallenge(email=email, code=generate_code())
        # fire-and-forget: queued behind this step, delivery is not awaited
        future = self._executor.submit(self._send_code, phone, challenge.code)
        future.add_done_callback(_log_send_crash)
        return challenge

    def _send_code(self, phone, code):
        delivered = self.gateway.send(phone, f"Your verification code is: {code}")
        if not delivered:
            logger.error(f"Failed to send verification code to {phone}")
        return delivered


def _log_send_crash(future):
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error(f"Verification code delivery crashed: {exc!r}")
