"""
Automation rule models.

A rule is a trigger -> condition -> action chain. Each stage is a tagged
variant (``kind`` discriminator); new kinds are added as new variant classes
and mapped from their wire names in ``AutomationRule.from_definition``.
"""

import re
import uuid
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .enums import ActionType, RuleOutcomeStatus, TriggerType
from .errors import InvalidArgumentError
from .inventory import InventoryItem

MISSING_VALUE = "N/A"
PLACEHOLDER_PATTERN = re.compile(r"\{(itemName|sku|quantity|oldQuantity|location)\}")


class OnStockLevelChange(BaseModel):
    """Fires when the derived total quantity differs between old and new snapshot."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["on_stock_level_change"] = "on_stock_level_change"

    def matches(self, old: InventoryItem | None, new: InventoryItem) -> bool:
        if old is None:
            return False
        return old.total_quantity != new.total_quantity


class QuantityBelow(BaseModel):
    """Met when the total quantity after the change is strictly below ``threshold``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["quantity_below"] = "quantity_below"
    threshold: float

    def matches(self, new: InventoryItem) -> bool:
        return new.total_quantity < self.threshold


class SendNotification(BaseModel):
    """Emit one notification built from ``message_template``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["send_notification"] = "send_notification"
    message_template: str

    def render(self, old: InventoryItem | None, new: InventoryItem) -> str:
        # Single pass over the template, so substituted values are never re-expanded.
        values = {
            "itemName": new.name or MISSING_VALUE,
            "sku": new.sku or MISSING_VALUE,
            "quantity": str(new.total_quantity),
            "oldQuantity": str(old.total_quantity) if old is not None else MISSING_VALUE,
            "location": new.location or MISSING_VALUE,
        }
        return PLACEHOLDER_PATTERN.sub(lambda m: values[m.group(1)], self.message_template)


Trigger = OnStockLevelChange
Condition = QuantityBelow
Action = SendNotification


class AutomationRule(BaseModel):
    """A persisted rule owned by an organization."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str
    name: str
    is_active: bool = True
    trigger: Trigger = Field(default_factory=OnStockLevelChange)
    condition: Condition | None = None
    action: Action
    created_by: str | None = None

    @classmethod
    def from_definition(cls, definition: dict[str, Any]) -> "AutomationRule":
        """
        Build a rule from its stored JSON shape::

            {"id", "organizationId", "name", "isActive", "triggerType",
             "condition": {"field": "quantity", "operator": "lt", "value": 10} | null,
             "action": {"type": "SEND_NOTIFICATION", "message": "..."}}

        Raises InvalidArgumentError for unsupported trigger, condition or action kinds.
        """
        organization_id = definition.get("organizationId")
        if not organization_id:
            raise InvalidArgumentError("Rule definition is missing organizationId")

        trigger_name = definition.get("triggerType")
        trigger_factory = TRIGGERS_BY_WIRE_NAME.get(trigger_name)  # type: ignore[arg-type]
        if trigger_factory is None:
            raise InvalidArgumentError(f"Unsupported trigger type: {trigger_name!r}")

        condition = None
        raw_condition = definition.get("condition")
        if raw_condition is not None and not isinstance(raw_condition, dict):
            raise InvalidArgumentError(f"Condition must be an object: {raw_condition!r}")
        if raw_condition:
            if raw_condition.get("field") != "quantity" or raw_condition.get("operator") != "lt":
                raise InvalidArgumentError(f"Unsupported condition: {raw_condition!r}")
            try:
                condition = QuantityBelow(threshold=float(raw_condition["value"]))
            except (KeyError, TypeError, ValueError) as e:
                raise InvalidArgumentError(f"Invalid condition value: {raw_condition!r}") from e

        raw_action = definition.get("action") or {}
        if not isinstance(raw_action, dict):
            raise InvalidArgumentError(f"Action must be an object: {raw_action!r}")
        if raw_action.get("type") != ActionType.SEND_NOTIFICATION.value:
            raise InvalidArgumentError(f"Unsupported action: {raw_action!r}")
        message = raw_action.get("message")
        if not isinstance(message, str):
            raise InvalidArgumentError("SEND_NOTIFICATION action requires a message")

        rule_fields: dict[str, Any] = {
            "organization_id": str(organization_id),
            "name": definition.get("name", ""),
            "is_active": bool(definition.get("isActive", True)),
            "trigger": trigger_factory(),
            "condition": condition,
            "action": SendNotification(message_template=message),
            "created_by": definition.get("userId"),
        }
        if definition.get("id"):
            rule_fields["id"] = str(definition["id"])
        return cls(**rule_fields)


TRIGGERS_BY_WIRE_NAME = {
    TriggerType.ON_STOCK_LEVEL_CHANGE.value: OnStockLevelChange,
}


class RuleOutcome(BaseModel):
    """Per-rule result of one evaluation pass."""

    rule_id: str
    item_id: str
    status: RuleOutcomeStatus
    message: str | None = None
    error: str | None = None
    attempts: int = 0
