# alert_engine/engine.py - low / zero stock decision rules
from dataclasses import dataclass
from enum import Enum


class AlertDecision(str, Enum):
    SUPPRESS = "suppress"
    FIRE_LOW_STOCK = "fire_low_stock"
    FIRE_OUT_OF_STOCK = "fire_out_of_stock"


@dataclass(frozen=True)
class AlertPolicy:
    """Snapshot of a user's alert settings."""

    sms_enabled: bool
    minimum_threshold: int = 2
    notify_at_zero: bool = False


def decide(previous_quantity: int, new_quantity: int, policy: AlertPolicy) -> AlertDecision:
    """
    Decide whether a quantity change should trigger an SMS alert.

    Thresholds match exactly: a change that jumps over ``minimum_threshold``
    (e.g. 3 -> 1) does not fire. Unchanged or increasing quantities never
    fire, so a repeated decrement at zero does not alert twice.
    """
    if not policy.sms_enabled:
        return AlertDecision.SUPPRESS
    if new_quantity >= previous_quantity:
        return AlertDecision.SUPPRESS
    if new_quantity == 0 and policy.notify_at_zero:
        return AlertDecision.FIRE_OUT_OF_STOCK
    if new_quantity == policy.minimum_threshold:
        return AlertDecision.FIRE_LOW_STOCK
    return AlertDecision.SUPPRESS
