"""
ORM-Level Append-Only Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Stock movements are the audit trail for every change to an inventory item's
quantity.  A movement that can be edited or deleted after the fact is not an
audit trail.  Corrections are made by recording a new, opposite movement.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database:

    session.flush()
         |
         v
    [before_update event] --> _check_append_only_update() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_append_only_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | When Immutable          | Why
----------------|-------------------------|----------------------------------
StockMovement   | ALWAYS (from creation)  | Audit trail for stock changes
LossStockRecord | ALWAYS (from creation)  | Ledger of meters lost per lot

Scrap records are NOT protected here: they move through active -> disposed /
cancelled by design.  They are never physically deleted; the scrap service
has no delete path.

===============================================================================
USAGE
===============================================================================

    from mill_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

Module models join the guard with ``@append_only``.

Tests that need to bypass the guard:

    unregister_immutability_listeners()
    ...
    register_immutability_listeners()
"""

from sqlalchemy import event

from mill_kernel.exceptions import ImmutabilityViolationError
from mill_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Module-level models opt in with @append_only; StockMovement is always guarded.
_APPEND_ONLY_MODELS: list[type] = []


def append_only(model: type) -> type:
    """Class decorator: guard ``model`` rows once the listeners are registered."""
    _APPEND_ONLY_MODELS.append(model)
    return model


def _guarded_models() -> list[type]:
    from mill_kernel.models.stock_movement import StockMovement

    return [StockMovement, *_APPEND_ONLY_MODELS]


def _block(target, operation: str, reason: str):
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_append_only_update(mapper, connection, target):
    """Prevent any updates to append-only records."""
    _block(target, "UPDATE", "Append-only records cannot be modified")


def _check_append_only_delete(mapper, connection, target):
    """Prevent deletion of append-only records."""
    _block(target, "DELETE", "Append-only records cannot be deleted")


def register_immutability_listeners():
    """
    Register append-only enforcement listeners.

    Idempotent: listeners already registered are not added twice.
    """
    for model in _guarded_models():
        if not event.contains(model, "before_update", _check_append_only_update):
            event.listen(model, "before_update", _check_append_only_update)
        if not event.contains(model, "before_delete", _check_append_only_delete):
            event.listen(model, "before_delete", _check_append_only_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove append-only enforcement listeners.

    WARNING: Only use this in tests.
    """
    for model in _guarded_models():
        _safe_remove_listener(model, "before_update", _check_append_only_update)
        _safe_remove_listener(model, "before_delete", _check_append_only_delete)
