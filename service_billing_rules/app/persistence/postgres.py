"""
PostgreSQL persistence layer for the Billing Rules Service.

Trigger, conditions and action are stored as JSONB documents; they are turned
back into typed rules through ``rules.serialization`` on the way out.
"""

import json
import uuid
from dataclasses import replace
from typing import Dict, Any, Optional, List

import asyncpg
from shared.logging import get_logger
from shared.errors import ExternalServiceError, RuleNotFoundError
from ..rules.models import BillingRule, ExecutionRecord
from ..rules.serialization import (
    action_to_dict, apply_rule_updates, condition_to_dict,
    execution_record_from_dict, rule_from_dict, trigger_to_dict,
)


def _json_value(raw: Any) -> Any:
    """asyncpg hands JSONB back as text unless a codec is registered."""
    if isinstance(raw, (str, bytes)):
        return json.loads(raw)
    return raw


class PostgresDatabase:
    """Connection pool shared by the rule store and the execution log."""

    def __init__(self, dsn: str):
        self.dsn = dsn
        self.logger = get_logger("billing_rules.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Open the pool and create tables."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30
            )
            await self._create_tables()
            self.logger.info("PostgreSQL persistence started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise ExternalServiceError("postgres", str(e))

    async def stop(self):
        if self.pool:
            await self.pool.close()
            self.logger.info("PostgreSQL persistence stopped")

    async def _create_tables(self):
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS billing_rules (
                    id VARCHAR(255) PRIMARY KEY,
                    name VARCHAR(255) NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    type VARCHAR(32) NOT NULL,
                    trigger JSONB NOT NULL,
                    conditions JSONB NOT NULL DEFAULT '[]',
                    action JSONB NOT NULL,
                    priority INTEGER NOT NULL DEFAULT 0,
                    is_active BOOLEAN NOT NULL DEFAULT TRUE,
                    tenant_ids JSONB,
                    plans JSONB,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_billing_rules_active_priority
                ON billing_rules(is_active, priority ASC);
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS billing_rule_executions (
                    id VARCHAR(255) PRIMARY KEY,
                    rule_id VARCHAR(255) NOT NULL,
                    tenant_id VARCHAR(255) NOT NULL,
                    action VARCHAR(32) NOT NULL,
                    context JSONB NOT NULL DEFAULT '{}',
                    status VARCHAR(16) NOT NULL,
                    error TEXT,
                    executed_at TIMESTAMP WITH TIME ZONE NOT NULL
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_billing_rule_executions_rule
                ON billing_rule_executions(rule_id, executed_at DESC);
            """)

    async def health_check(self) -> bool:
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception:
            return False


class PostgresRuleStore:
    """Rule store backed by the ``billing_rules`` table."""

    def __init__(self, database: PostgresDatabase):
        self.database = database
        self.logger = get_logger("billing_rules.persistence.postgres.rules")

    async def get_rules(self, filters: Optional[Dict[str, Any]] = None) -> List[BillingRule]:
        clauses: List[str] = []
        params: List[Any] = []
        filters = filters or {}

        if filters.get("type") is not None:
            params.append(getattr(filters["type"], "value", filters["type"]))
            clauses.append(f"type = ${len(params)}")
        if filters.get("is_active") is not None:
            params.append(bool(filters["is_active"]))
            clauses.append(f"is_active = ${len(params)}")

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self.database.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT * FROM billing_rules {where} ORDER BY priority ASC, created_at ASC",
                *params
            )
        return [self._row_to_rule(row) for row in rows]

    async def get_active_rules(self, filters: Optional[Dict[str, Any]] = None) -> List[BillingRule]:
        merged = dict(filters or {})
        merged["is_active"] = True
        return await self.get_rules(merged)

    async def get_rule(self, rule_id: str) -> BillingRule:
        async with self.database.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM billing_rules WHERE id = $1", rule_id)
        if not row:
            raise RuleNotFoundError(rule_id)
        return self._row_to_rule(row)

    async def create_rule(self, rule: BillingRule) -> BillingRule:
        if not rule.id or await self._exists(rule.id):
            rule = replace(rule, id=str(uuid.uuid4()))
        await self._save_rule(rule)
        return rule

    async def _exists(self, rule_id: str) -> bool:
        async with self.database.pool.acquire() as conn:
            return await conn.fetchval("SELECT 1 FROM billing_rules WHERE id = $1", rule_id) is not None

    async def update_rule(self, rule_id: str, updates: Dict[str, Any]) -> BillingRule:
        existing = await self.get_rule(rule_id)
        updated = apply_rule_updates(existing, updates)
        await self._save_rule(updated)
        return updated

    async def delete_rule(self, rule_id: str) -> None:
        async with self.database.pool.acquire() as conn:
            result = await conn.execute("DELETE FROM billing_rules WHERE id = $1", rule_id)
        if result != "DELETE 1":
            raise RuleNotFoundError(rule_id)
        self.logger.info("Rule deleted", rule_id=rule_id)

    async def _save_rule(self, rule: BillingRule) -> None:
        async with self.database.pool.acquire() as conn:
            await conn.execute("""
                INSERT INTO billing_rules (
                    id, name, description, type, trigger, conditions, action,
                    priority, is_active, tenant_ids, plans, created_at, updated_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
                ON CONFLICT (id) DO UPDATE SET
                    name = EXCLUDED.name,
                    description = EXCLUDED.description,
                    type = EXCLUDED.type,
                    trigger = EXCLUDED.trigger,
                    conditions = EXCLUDED.conditions,
                    action = EXCLUDED.action,
                    priority = EXCLUDED.priority,
                    is_active = EXCLUDED.is_active,
                    tenant_ids = EXCLUDED.tenant_ids,
                    plans = EXCLUDED.plans,
                    updated_at = EXCLUDED.updated_at
            """,
                rule.id, rule.name, rule.description, rule.type.value,
                json.dumps(trigger_to_dict(rule.trigger)),
                json.dumps([condition_to_dict(c) for c in rule.conditions]),
                json.dumps(action_to_dict(rule.action)),
                rule.priority, rule.is_active,
                json.dumps(rule.tenant_ids) if rule.tenant_ids is not None else None,
                json.dumps(rule.plans) if rule.plans is not None else None,
                rule.created_at, rule.updated_at
            )
        self.logger.info("Rule saved", rule_id=rule.id, name=rule.name)

    def _row_to_rule(self, row) -> BillingRule:
        tenant_ids = row["tenant_ids"]
        plans = row["plans"]
        return rule_from_dict({
            "id": row["id"],
            "name": row["name"],
            "description": row["description"],
            "type": row["type"],
            "trigger": _json_value(row["trigger"]),
            "conditions": _json_value(row["conditions"]),
            "action": _json_value(row["action"]),
            "priority": row["priority"],
            "is_active": row["is_active"],
            "tenant_ids": _json_value(tenant_ids) if tenant_ids is not None else None,
            "plans": _json_value(plans) if plans is not None else None,
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        })

    async def health_check(self) -> bool:
        return await self.database.health_check()


class PostgresExecutionLog:
    """Execution history in the ``billing_rule_executions`` table."""

    def __init__(self, database: PostgresDatabase):
        self.database = database

    async def record(self, entry: ExecutionRecord) -> None:
        if entry.id is None:
            entry.id = str(uuid.uuid4())
        async with self.database.pool.acquire() as conn:
            await conn.execute("""
                INSERT INTO billing_rule_executions (
                    id, rule_id, tenant_id, action, context, status, error, executed_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
                entry.id, entry.rule_id, entry.tenant_id, entry.action.value,
                json.dumps(entry.context, default=str),
                entry.status.value, entry.error, entry.executed_at
            )

    async def list_history(self, rule_id: str, limit: int = 50) -> List[ExecutionRecord]:
        async with self.database.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT * FROM billing_rule_executions
                WHERE rule_id = $1
                ORDER BY executed_at DESC
                LIMIT $2
            """, rule_id, limit)

        return [
            execution_record_from_dict({
                "id": row["id"],
                "rule_id": row["rule_id"],
                "tenant_id": row["tenant_id"],
                "action": row["action"],
                "context": _json_value(row["context"]),
                "status": row["status"],
                "error": row["error"],
                "executed_at": row["executed_at"],
            })
            for row in rows
        ]
