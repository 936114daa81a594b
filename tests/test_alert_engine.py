import pytest

from alert_engine.engine import AlertDecision, AlertPolicy, decide
from alert_engine.notifier import AlertNotifier, compose_message

ON = AlertPolicy(sms_enabled=True, minimum_threshold=2, notify_at_zero=False)
ON_ZERO = AlertPolicy(sms_enabled=True, minimum_threshold=2, notify_at_zero=True)
OFF = AlertPolicy(sms_enabled=False, minimum_threshold=2, notify_at_zero=True)


@pytest.mark.parametrize(
    "previous, new, policy, expected",
    [
        (3, 2, ON, AlertDecision.FIRE_LOW_STOCK),
        (2, 1, ON, AlertDecision.SUPPRESS),
        (1, 0, ON_ZERO, AlertDecision.FIRE_OUT_OF_STOCK),
        (1, 0, ON, AlertDecision.SUPPRESS),
        (3, 1, ON, AlertDecision.SUPPRESS),
        (0, 1, ON_ZERO, AlertDecision.SUPPRESS),
        (1, 2, ON, AlertDecision.SUPPRESS),
        (0, 0, ON_ZERO, AlertDecision.SUPPRESS),
        (3, 2, OFF, AlertDecision.SUPPRESS),
        (1, 0, OFF, AlertDecision.SUPPRESS),
        (10, 0, ON_ZERO, AlertDecision.FIRE_OUT_OF_STOCK),
    ],
)
def test_decide(previous, new, policy, expected):
    assert decide(previous, new, policy) == expected


def test_zero_threshold_without_notify_at_zero_is_low_stock():
    policy = AlertPolicy(sms_enabled=True, minimum_threshold=0, notify_at_zero=False)
    assert decide(1, 0, policy) == AlertDecision.FIRE_LOW_STOCK


def test_policy_defaults():
    policy = AlertPolicy(sms_enabled=True)
    assert policy.minimum_threshold == 2
    assert policy.notify_at_zero is False


def test_messages():
    assert compose_message(AlertDecision.FIRE_OUT_OF_STOCK, "Bolts", ON_ZERO) == (
        "Streamline Inventory: Out of inventory for Bolts"
    )
    assert compose_message(AlertDecision.FIRE_LOW_STOCK, "Bolts", ON) == (
        "Streamline Inventory: Low inventory alert - Bolts is down to 2"
    )
    assert compose_message(AlertDecision.SUPPRESS, "Bolts", ON) is None


def test_notifier_reports_undelivered(gateway):
    gateway.deliver = False
    notifier = AlertNotifier(gateway, lambda email: "+1555")
    assert notifier.dispatch("a@example.com", "Bolts", AlertDecision.FIRE_LOW_STOCK, ON) is False
    assert gateway.sent == [("+1555", "Streamline Inventory: Low inventory alert - Bolts is down to 2")]


def test_notifier_without_phone(gateway):
    def no_phone(email):
        raise LookupError(email)

    notifier = AlertNotifier(gateway, no_phone)
    assert notifier.dispatch("a@example.com", "Bolts", AlertDecision.FIRE_LOW_STOCK, ON) is False
