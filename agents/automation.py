"""
Automation Rule Engine.

Subscribes to ledger change events and evaluates every active rule of the
item's organization through trigger -> condition -> action. Each rule is an
isolated unit of work: a failing rule is recorded as ``failed`` and never
stops the others. The engine never writes to the ledger.
"""

import asyncio
import logging
from collections import deque

from agents.base import BaseAgent
from config.config import ReconciliationConfig
from connectors.activity_log import ActivityLog
from connectors.rule_store import InMemoryRuleStore
from models.automation import AutomationRule, RuleOutcome
from models.enums import ActivityType, AgentType, RuleOutcomeStatus
from models.events import LEDGER_CHANGED, LedgerChangeEvent
from utils.event_bus import EventBus

logger = logging.getLogger(__name__)


class AutomationRuleEngine(BaseAgent):
    """Evaluates persisted automation rules against ledger change events."""

    def __init__(
        self,
        agent_id: str,
        event_bus: EventBus,
        rules: InMemoryRuleStore,
        activity_log: ActivityLog | None = None,
        config: ReconciliationConfig | None = None,
    ):
        super().__init__(agent_id, AgentType.AUTOMATION, event_bus, activity_log, config)
        self.rules = rules
        self.recent_outcomes: deque[RuleOutcome] = deque(maxlen=self.config.recent_outcome_limit)
        self.register_event_handlers()

    def register_event_handlers(self) -> None:
        self.event_bus.subscribe(LEDGER_CHANGED, self.handle_ledger_change)

    async def handle_ledger_change(self, event: LedgerChangeEvent) -> None:
        """Event bus entry point."""
        await self.evaluate(event)

    async def evaluate(self, event: LedgerChangeEvent) -> list[RuleOutcome]:
        """Evaluate all candidate rules for one change and return one outcome per rule."""
        try:
            rules = await asyncio.wait_for(
                self.rules.list_active(event.organization_id),
                timeout=self.config.persistence_timeout_seconds,
            )
        except Exception as e:
            logger.error(f"Failed to load automation rules for organization {event.organization_id}: {e}")
            return []

        candidates = [r for r in rules if r.is_active and r.organization_id == event.organization_id]
        if not candidates:
            logger.debug(f"No active automation rules for organization {event.organization_id}")
            return []

        outcomes = list(await asyncio.gather(*(self._evaluate_rule(rule, event) for rule in candidates)))
        self.recent_outcomes.extend(outcomes)
        return outcomes

    async def _evaluate_rule(self, rule: AutomationRule, event: LedgerChangeEvent) -> RuleOutcome:
        try:
            if not rule.trigger.matches(event.old, event.new):
                return self._outcome(rule, event, RuleOutcomeStatus.TRIGGER_NOT_MATCHED)
            if rule.condition is not None and not rule.condition.matches(event.new):
                logger.debug(
                    f"Rule {rule.name}: condition not met (total={event.new.total_quantity})"
                )
                return self._outcome(rule, event, RuleOutcomeStatus.CONDITION_NOT_MET)
            message = rule.action.render(event.old, event.new)
        except Exception as e:
            logger.error(f"Rule {rule.name} ({rule.id}) failed during evaluation: {e}")
            return self._outcome(rule, event, RuleOutcomeStatus.FAILED, error=str(e))

        return await self._send_notification(rule, event, message)

    async def _send_notification(
        self, rule: AutomationRule, event: LedgerChangeEvent, message: str
    ) -> RuleOutcome:
        new, old = event.new, event.old
        details = {
            "rule_id": rule.id,
            "rule_name": rule.name,
            "item_id": new.id,
            "item_name": new.name,
            "sku": new.sku,
            "current_quantity": new.total_quantity,
            "old_quantity": old.total_quantity if old is not None else None,
            "location": new.location,
        }
        max_attempts = max(1, self.config.rule_action_max_attempts)
        last_error: Exception | None = None
        for attempt in range(1, max_attempts + 1):
            try:
                await self.notify(
                    event.organization_id,
                    ActivityType.AUTOMATION_NOTIFICATION,
                    message,
                    details,
                    user_id=rule.created_by,
                )
            except Exception as e:
                last_error = e
                logger.warning(f"Rule {rule.name}: notification attempt {attempt}/{max_attempts} failed: {e}")
                if attempt < max_attempts:
                    await asyncio.sleep(self.config.rule_retry_delay_seconds)
                continue
            logger.info(f"Rule {rule.name} - Notification sent: {message!r}")
            return self._outcome(rule, event, RuleOutcomeStatus.SUCCESS, message=message, attempts=attempt)

        logger.error(f"Rule {rule.name} ({rule.id}) failed after {max_attempts} attempts: {last_error}")
        return self._outcome(
            rule, event, RuleOutcomeStatus.FAILED, message=message, error=str(last_error), attempts=max_attempts
        )

    @staticmethod
    def _outcome(
        rule: AutomationRule,
        event: LedgerChangeEvent,
        status: RuleOutcomeStatus,
        message: str | None = None,
        error: str | None = None,
        attempts: int = 0,
    ) -> RuleOutcome:
        return RuleOutcome(
            rule_id=rule.id, item_id=event.item_id, status=status, message=message, error=error, attempts=attempts
        )
