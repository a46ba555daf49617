"""
Side-effect-free rule simulation for rule authors.
"""

from typing import Any, Dict, Mapping, Union

from shared.logging import get_logger
from .conditions import evaluate_all
from .models import (
    AmountType, BillingRule, ChargeAction, CreditAction, DiscountAction,
    NotificationAction, PlanChangeAction, RuleAction, RuleTestResult,
)
from .serialization import rule_from_dict

logger = get_logger("billing_rules.simulation")


def _format_amount(amount: float) -> str:
    return f"{amount:g}"


def describe_action(action: RuleAction) -> Dict[str, Any]:
    """What the action would do, without doing it."""
    if isinstance(action, DiscountAction):
        if action.amount_type == AmountType.PERCENTAGE:
            text = f"{_format_amount(action.amount)}% discount applied"
        else:
            text = f"${_format_amount(action.amount)} discount applied"
        return {
            "discount": action.amount,
            "type": action.amount_type.value,
            "description": text,
        }

    if isinstance(action, ChargeAction):
        return {
            "charge": action.amount,
            "target": action.target,
            "description": f"${_format_amount(action.amount)} charge for {action.target}",
        }

    if isinstance(action, CreditAction):
        return {
            "credit": action.amount,
            "description": f"${_format_amount(action.amount)} credit applied",
        }

    if isinstance(action, NotificationAction):
        return {
            "notification": dict(action.metadata),
            "description": "Notification would be sent",
        }

    if isinstance(action, PlanChangeAction):
        return {
            "target": action.target,
            "type": action.direction.value,
            "description": f"Plan {action.direction.value} to {action.target}",
        }

    return {}


def test_rule(
    candidate: Union[BillingRule, Mapping[str, Any]],
    sample_data: Any,
) -> RuleTestResult:
    """Evaluate a (possibly draft) rule's conditions against sample data.

    The trigger is not consulted and no collaborator is called. Problems with
    the draft come back in ``errors`` instead of being raised.
    """
    try:
        rule = candidate if isinstance(candidate, BillingRule) else rule_from_dict(candidate)

        if not evaluate_all(rule.conditions, sample_data):
            return RuleTestResult(triggered=False)

        return RuleTestResult(triggered=True, result=describe_action(rule.action))

    except Exception as e:
        logger.info("Rule test failed", error=str(e))
        return RuleTestResult(triggered=False, errors=[str(e)])


# Keep pytest from collecting the function when it is imported into test modules.
test_rule.__test__ = False
