"""
Structured logging for the Tenant Billing Rules service.

Every event is rendered as one JSON line carrying the logger name, level,
ISO timestamp and whatever correlation identifiers are bound to the current
request (request, tenant and rule IDs).
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
tenant_id_var: ContextVar[Optional[str]] = ContextVar('tenant_id', default=None)
rule_id_var: ContextVar[Optional[str]] = ContextVar('rule_id', default=None)

_CORRELATION_VARS = {
    "request_id": request_id_var,
    "tenant_id": tenant_id_var,
    "rule_id": rule_id_var,
}


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structlog and the stdlib root logger for a service."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_correlation_context,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Derive ``service`` from a dotted logger name such as ``billing_rules.executor``."""
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict.setdefault("service", logger_name.split(".")[0])
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Copy bound correlation IDs onto the event; explicit fields win."""
    for key, var in _CORRELATION_VARS.items():
        value = var.get()
        if value and key not in event_dict:
            event_dict[key] = value
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request ID, generating one when none was supplied."""
    request_id = request_id or str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_billing_context(tenant_id: Optional[str] = None, rule_id: Optional[str] = None):
    """Bind tenant and rule identifiers to subsequent log events."""
    if tenant_id:
        tenant_id_var.set(tenant_id)
    if rule_id:
        rule_id_var.set(rule_id)


def clear_context():
    for var in _CORRELATION_VARS.values():
        var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
