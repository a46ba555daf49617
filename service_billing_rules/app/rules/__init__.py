"""
Rules engine package.

Defines the billing rule model and the pieces the engine composes:

- models: Data classes for rules, triggers, conditions, actions and results.
- conditions: Field resolution and operator semantics.
- triggers: Whether a rule's activation event holds for a context.
- scoper: Which rules apply to a tenant and usage snapshot.
- sequencer: Priority-ordered adjustments and the final amount.
- executor: Action dispatch with execution history.
- simulation: Side-effect-free evaluation of draft rules.
- engine: Facade wiring the above to injected collaborators.
"""
