# alert_engine/notifier.py - turn an alert decision into an SMS
from typing import Optional

from loguru import logger

from alert_engine.engine import AlertDecision, AlertPolicy

MESSAGE_PREFIX = "Streamline Inventory"


def compose_message(decision: AlertDecision, item_name: str, policy: AlertPolicy) -> Optional[str]:
    if decision == AlertDecision.FIRE_OUT_OF_STOCK:
        return f"{MESSAGE_PREFIX}: Out of inventory for {item_name}"
    if decision == AlertDecision.FIRE_LOW_STOCK:
        return (
            f"{MESSAGE_PREFIX}: Low inventory alert - {item_name} "
            f"is down to {policy.minimum_threshold}"
        )
    return None


class AlertNotifier:
    """Best-effort delivery of stock alerts; never raises."""

    def __init__(self, gateway, phone_lookup):
        self.gateway = gateway
        # callable(email) -> phone number
        self.phone_lookup = phone_lookup

    def dispatch(self, email: str, item_name: str, decision: AlertDecision, policy: AlertPolicy) -> bool:
        message = compose_message(decision, item_name, policy)
        if message is None:
            return False
        try:
            phone = self.phone_lookup(email)
        except Exception as e:
            logger.error(f"Alert for {item_name} dropped, no phone for {email}: {e}")
            return False

        delivered = self.gateway.send(phone, message)
        if delivered:
            logger.info(f"{decision.value} alert sent for '{item_name}' ({email})")
        else:
            logger.warning(f"{decision.value} alert for '{item_name}' ({email}) not delivered")
        return delivered
