import asyncio

import pytest

from auth_service import controller as controller_module
from auth_service.codes import generate_code
from auth_service.controller import (
    AuthSessionController,
    AuthState,
    PromptResult,
    RejectionReason,
)
from auth_service.errors import InvalidStateError, StorageFailure
from auth_service.validation import InputProblem, is_valid_password


def run(coro):
    return asyncio.run(coro)


def test_generated_codes_are_six_digits():
    for _ in range(200):
        code = generate_code()
        assert len(code) == 6
        assert code.isdigit()
        assert code[0] != "0"
        assert 100000 <= int(code) <= 999999


@pytest.mark.parametrize(
    "password, accepted",
    [
        ("Abcdef1!", True),
        ("Abcdef1@", True),
        ("abcdefgh", False),
        ("Short1!", False),
        ("ABCDEFG1!", False),
        ("Abcdefg!", False),
        ("Abcdefg1", False),
        ("Abc def1!", False),
    ],
)
def test_password_policy(password, accepted):
    assert is_valid_password(password) is accepted


@pytest.mark.parametrize(
    "form, problem",
    [
        (("", "Abcdef1!", "Abcdef1!", "+1555"), InputProblem.MISSING_FIELDS),
        (("a@example.com", "Abcdef1!", "Abcdef1!", ""), InputProblem.MISSING_FIELDS),
        (("not-an-email", "Abcdef1!", "Abcdef1!", "+1555"), InputProblem.INVALID_EMAIL),
        (("a@example", "Abcdef1!", "Abcdef1!", "+1555"), InputProblem.INVALID_EMAIL),
        (("a@example.com", "abcdefgh", "abcdefgh", "+1555"), InputProblem.WEAK_PASSWORD),
        (("a@example.com", "Abcdef1!", "Abcdef1@", "+1555"), InputProblem.PASSWORD_MISMATCH),
    ],
)
def test_register_rejects_bad_input(controller, store, form, problem):
    outcome = run(controller.new_session().register(*form))
    assert outcome.state == AuthState.REJECTED
    assert outcome.reason == RejectionReason.INVALID_INPUT
    assert outcome.problem == problem
    assert outcome.message
    if form[0]:
        assert not store.account_exists(form[0])


def test_register_success_does_not_authenticate(controller, store):
    outcome = run(controller.new_session().register("bob@example.com", "Abcdef1!", "Abcdef1!", "+1555"))
    assert outcome.state == AuthState.REGISTERED
    assert outcome.ok
    assert store.verify_credentials("bob@example.com", "Abcdef1!")


def test_register_twice_is_user_exists(controller, alice):
    outcome = run(controller.new_session().register(alice, "Xyzabc2#", "Xyzabc2#", "+1666"))
    assert outcome.state == AuthState.REJECTED
    assert outcome.reason == RejectionReason.USER_EXISTS


def test_login_requires_fields(controller):
    outcome = run(controller.new_session().login("", "x", sms_enabled=False))
    assert outcome.reason == RejectionReason.INVALID_INPUT
    assert outcome.problem == InputProblem.MISSING_FIELDS


def test_login_does_not_check_formats(controller, store):
    outcome = run(controller.new_session().login("not-an-email", "weak", sms_enabled=False))
    assert outcome.reason == RejectionReason.BAD_CREDENTIALS


def test_bad_credentials_message_does_not_leak_existence(controller, alice):
    unknown = run(controller.new_session().login("nobody@example.com", "Abcdef1!", sms_enabled=False))
    wrong = run(controller.new_session().login(alice, "Wrong1!pass", sms_enabled=False))
    assert unknown.reason == wrong.reason == RejectionReason.BAD_CREDENTIALS
    assert unknown.message == wrong.message


def test_login_without_two_factor(controller, gateway, alice):
    outcome = run(controller.new_session().login(alice, "Abcdef1!", sms_enabled=True))
    assert outcome.state == AuthState.AUTHENTICATED
    assert outcome.email == alice
    assert gateway.sent == []


def test_two_factor_ignored_when_sms_disabled(controller, store, gateway, alice):
    store.set_two_factor_enabled(alice, True)
    outcome = run(controller.new_session().login(alice, "Abcdef1!", sms_enabled=False))
    assert outcome.state == AuthState.AUTHENTICATED
    assert gateway.sent == []


def test_two_factor_correct_code(controller, store, gateway, alice):
    store.set_two_factor_enabled(alice, True)
    session = controller.new_session()

    async def flow():
        outcome = await session.login(alice, "Abcdef1!", sms_enabled=True)
        assert outcome.state == AuthState.AWAITING_CODE
        assert outcome.challenge_id
        await controller.drain()
        assert gateway.sent[0][0] == "+15550001111"
        assert gateway.sent[0][1].startswith("Your verification code is: ")
        return await session.submit_code(PromptResult.entered(gateway.last_code))

    outcome = run(flow())
    assert outcome.state == AuthState.AUTHENTICATED
    assert outcome.email == alice


def test_two_factor_wrong_code(controller, store, alice, monkeypatch):
    monkeypatch.setattr(controller_module, "generate_code", lambda: "123456")
    store.set_two_factor_enabled(alice, True)
    session = controller.new_session()

    async def flow():
        await session.login(alice, "Abcdef1!", sms_enabled=True)
        return await session.submit_code(PromptResult.confirmed("654321"))

    outcome = run(flow())
    assert outcome.state == AuthState.REJECTED
    assert outcome.reason == RejectionReason.BAD_CODE
    # one attempt per challenge
    with pytest.raises(InvalidStateError):
        run(session.submit_code(PromptResult.entered("123456")))


def test_two_factor_cancelled(controller, store, alice):
    store.set_two_factor_enabled(alice, True)
    session = controller.new_session()

    async def flow():
        await session.login(alice, "Abcdef1!", sms_enabled=True)
        return await session.submit_code(PromptResult.cancelled())

    outcome = run(flow())
    assert outcome.state == AuthState.REJECTED
    assert outcome.reason == RejectionReason.CANCELLED


def test_gateway_failure_is_not_fatal(store, gateway, alice):
    gateway.explode = True
    ctrl = AuthSessionController(store, gateway, code_max_attempts=1, code_ttl_seconds=0)
    store.set_two_factor_enabled(alice, True)
    try:
        session = ctrl.new_session()

        async def flow():
            outcome = await session.login(alice, "Abcdef1!", sms_enabled=True)
            await ctrl.drain()
            return outcome

        assert run(flow()).state == AuthState.AWAITING_CODE
    finally:
        ctrl.shutdown()


def test_extra_attempts_when_configured(store, gateway, alice, monkeypatch):
    monkeypatch.setattr(controller_module, "generate_code", lambda: "111111")
    ctrl = AuthSessionController(store, gateway, code_max_attempts=2, code_ttl_seconds=0)
    store.set_two_factor_enabled(alice, True)
    try:
        session = ctrl.new_session()

        async def flow():
            await session.login(alice, "Abcdef1!", sms_enabled=True)
            first = await session.submit_code(PromptResult.entered("222222"))
            second = await session.submit_code(PromptResult.entered("111111"))
            return first, second

        first, second = run(flow())
        assert first.state == AuthState.AWAITING_CODE
        assert second.state == AuthState.AUTHENTICATED
    finally:
        ctrl.shutdown()


def test_expired_code_is_rejected(store, gateway, alice, monkeypatch):
    monkeypatch.setattr(controller_module, "generate_code", lambda: "111111")
    ctrl = AuthSessionController(store, gateway, code_max_attempts=1, code_ttl_seconds=30)
    store.set_two_factor_enabled(alice, True)
    try:
        session = ctrl.new_session()

        async def flow():
            await session.login(alice, "Abcdef1!", sms_enabled=True)
            session._challenge.issued_at -= 60
            return await session.submit_code(PromptResult.entered("111111"))

        outcome = run(flow())
        assert outcome.state == AuthState.REJECTED
        assert outcome.reason == RejectionReason.BAD_CODE
    finally:
        ctrl.shutdown()


def test_session_is_single_use(controller, alice):
    session = controller.new_session()
    run(session.login(alice, "Abcdef1!", sms_enabled=False))
    with pytest.raises(InvalidStateError):
        run(session.login(alice, "Abcdef1!", sms_enabled=False))


def test_discarded_session_drops_result(controller, store, alice):
    store.set_two_factor_enabled(alice, True)
    session = controller.new_session()

    async def flow():
        task = asyncio.ensure_future(session.login(alice, "Abcdef1!", sms_enabled=True))
        session.discard()
        return await task

    outcome = run(flow())
    assert outcome.state == AuthState.REJECTED
    assert outcome.reason == RejectionReason.CANCELLED
    assert session.challenge_id is None


def test_storage_error_on_register_is_generic(controller, store, monkeypatch):
    def broken(email, password, phone):
        raise StorageFailure("disk I/O error")

    monkeypatch.setattr(store, "create_account", broken)
    outcome = run(controller.new_session().register("bob@example.com", "Abcdef1!", "Abcdef1!", "+1555"))
    assert outcome.state == AuthState.REJECTED
    assert outcome.reason == RejectionReason.STORAGE_FAILURE
    assert outcome.message == "Something went wrong, please try again"
