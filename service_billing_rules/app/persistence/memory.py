"""
In-process rule store and execution log.

Selected with ``BILLING_RULE_STORE_BACKEND=memory`` for local runs, and used
as the collaborator double in tests.
"""

import uuid
from dataclasses import replace
from typing import Any, Dict, List, Optional

from shared.errors import RuleNotFoundError
from shared.logging import get_logger
from ..rules.models import BillingRule, ExecutionRecord
from ..rules.serialization import apply_rule_updates


def matches_filters(rule: BillingRule, filters: Optional[Dict[str, Any]]) -> bool:
    """Apply the ``type`` / ``is_active`` rule filters."""
    if not filters:
        return True
    rule_type = filters.get("type")
    if rule_type is not None and rule.type.value != getattr(rule_type, "value", rule_type):
        return False
    is_active = filters.get("is_active")
    if is_active is not None and rule.is_active != is_active:
        return False
    return True


class InMemoryRuleStore:
    """Rule store kept in a dict, ordered by priority on read."""

    def __init__(self, rules: Optional[List[BillingRule]] = None):
        self.logger = get_logger("billing_rules.persistence.memory")
        self._rules: Dict[str, BillingRule] = {}
        for rule in rules or []:
            self._rules[rule.id] = rule

    async def get_rules(self, filters: Optional[Dict[str, Any]] = None) -> List[BillingRule]:
        rules = [rule for rule in self._rules.values() if matches_filters(rule, filters)]
        return sorted(rules, key=lambda rule: rule.priority)

    async def get_active_rules(self, filters: Optional[Dict[str, Any]] = None) -> List[BillingRule]:
        merged = dict(filters or {})
        merged["is_active"] = True
        return await self.get_rules(merged)

    async def get_rule(self, rule_id: str) -> BillingRule:
        rule = self._rules.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    async def create_rule(self, rule: BillingRule) -> BillingRule:
        if not rule.id or rule.id in self._rules:
            rule = replace(rule, id=str(uuid.uuid4()))
        self._rules[rule.id] = rule
        self.logger.info("Rule saved", rule_id=rule.id, name=rule.name)
        return rule

    async def update_rule(self, rule_id: str, updates: Dict[str, Any]) -> BillingRule:
        existing = await self.get_rule(rule_id)
        updated = apply_rule_updates(existing, updates)
        self._rules[rule_id] = updated
        return updated

    async def delete_rule(self, rule_id: str) -> None:
        if rule_id not in self._rules:
            raise RuleNotFoundError(rule_id)
        del self._rules[rule_id]

    async def health_check(self) -> bool:
        return True


class InMemoryExecutionLog:
    """Execution history kept in a list."""

    def __init__(self):
        self.entries: List[ExecutionRecord] = []

    async def record(self, entry: ExecutionRecord) -> None:
        if entry.id is None:
            entry.id = str(uuid.uuid4())
        self.entries.append(entry)

    async def list_history(self, rule_id: str, limit: int = 50) -> List[ExecutionRecord]:
        history = [entry for entry in self.entries if entry.rule_id == rule_id]
        history.sort(key=lambda entry: entry.executed_at, reverse=True)
        return history[:limit]
