"""
Billing Rules Service package.

Turns a tenant's plan price and usage snapshot into a final bill by
applying configurable billing rules, and performs rule actions (discounts,
charges, credits, notifications, plan changes) against external
collaborators. It provides:

- app.main: API surface for rule management, calculation, simulation and history.
- app.rules: Rule model, condition/trigger evaluation, sequencing and execution.
- app.persistence: In-memory and PostgreSQL rule stores and execution logs.
- app.clients: HTTP clients for the tenant, usage, ledger and notification services.

The engine keeps no state of its own; rules and history live in the
configured store.
"""
