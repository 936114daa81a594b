# inventory/service.py - quantity mutations + stock alert decisions
from dataclasses import dataclass

from loguru import logger

from alert_engine.engine import AlertDecision, AlertPolicy, decide


@dataclass(frozen=True)
class QuantityChange:
    item: dict
    previous_quantity: int
    decision: AlertDecision
    policy: AlertPolicy

    @property
    def fires(self):
        return self.decision != AlertDecision.SUPPRESS


class InventoryService:
    """
    Every quantity mutation goes through here so the alert rules see the
    before/after values. The mutation is committed before any alert is
    considered; a failed alert never undoes it.
    """

    def __init__(self, repository, settings_store, notifier):
        self.repository = repository
        self.settings = settings_store
        self.notifier = notifier

    def _evaluate(self, email, before, item):
        policy = self.settings.get_policy(email)
        decision = decide(before, item["quantity"], policy)
        return QuantityChange(item=item, previous_quantity=before, decision=decision, policy=policy)

    def increment(self, email, item_id) -> QuantityChange:
        before, item = self.repository.increment(email, item_id)
        return self._evaluate(email, before, item)

    def decrement(self, email, item_id) -> QuantityChange:
        before, item = self.repository.decrement(email, item_id)
        return self._evaluate(email, before, item)

    def update(self, email, item_id, name, quantity) -> QuantityChange:
        before, item = self.repository.update_item(email, item_id, name, quantity)
        return self._evaluate(email, before, item)

    def notify(self, email, change: QuantityChange) -> bool:
        if not change.fires:
            return False
        try:
            return self.notifier.dispatch(email, change.item["name"], change.decision, change.policy)
        except Exception as e:
            logger.error(f"Stock alert for item {change.item['id']} failed: {e!r}")
            return False
