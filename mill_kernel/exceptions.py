"""
Typed Exception Hierarchy for the Mill Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock and production ledgers must report failures precisely. The HTTP
boundary, the UI and the logs all need to know *which* rule was broken and
with what numbers, without parsing message strings.

Every exception therefore:
  1. Has a TYPED class (catch by type, not by message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (available vs requested, ids)

Example:
    try:
        scrap_service.move_to_scrap(item_id, request, user_id, company_id)
    except InsufficientStockError as e:
        api_response(code=e.code, available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from AppError:

    AppError (base)
    |
    +-- ValidationError
    |   +-- MissingParameterError
    |   +-- InvalidQuantityError
    |   +-- InvalidModuleError
    |   +-- MeterExceedsInputError
    |   +-- MeterRegressionError
    |   +-- InsufficientInputMeterError
    |   +-- ScrapAlreadyDisposedError
    |   +-- ProtectedFieldError
    |
    +-- NotFoundError
    |   +-- InventoryItemNotFoundError
    |   +-- ScrapNotFoundError
    |   +-- StageEntryNotFoundError
    |
    +-- ForbiddenError
    |   +-- CrossTenantAccessError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |
    +-- ConcurrencyError
    |   +-- DuplicateDocumentNumberError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                       | When Raised
-------------|----------------------------|-------------------------------------------
Validation   | MISSING_PARAMETER          | companyId / lotNumber / ids not supplied
             | INVALID_QUANTITY           | Zero or negative quantity / meter
             | INVALID_MODULE             | Unknown production stage identifier
             | METER_EXCEEDS_INPUT        | processed + loss > input on a stage entry
             | METER_REGRESSION           | Recorded processed/loss would decrease
             | INSUFFICIENT_INPUT_METER   | Stage claims more than upstream produced
             | SCRAP_ALREADY_DISPOSED     | Disposal recorded twice
             | PROTECTED_FIELD            | Update touches a field that cannot change
-------------|----------------------------|-------------------------------------------
Not found    | INVENTORY_ITEM_NOT_FOUND   | Inventory item id doesn't exist
             | SCRAP_NOT_FOUND            | Scrap id doesn't exist
             | STAGE_ENTRY_NOT_FOUND      | Production stage entry id doesn't exist
-------------|----------------------------|-------------------------------------------
Forbidden    | CROSS_TENANT_ACCESS        | Entity belongs to another company
-------------|----------------------------|-------------------------------------------
Stock        | INSUFFICIENT_STOCK         | Requested quantity > current stock
-------------|----------------------------|-------------------------------------------
Concurrency  | DUPLICATE_DOCUMENT_NUMBER  | Generated number collided after retry
-------------|----------------------------|-------------------------------------------
Immutability | IMMUTABILITY_VIOLATION     | Update/delete of an append-only record

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Services raise; they never translate to HTTP. ``mill_api.errors`` maps the
   category (ValidationError -> 400, NotFoundError -> 404, ...) at the edge.

2. Catch specific classes where the caller can act:

    except InsufficientInputMeterError as e:
        prompt_operator(max_meter=e.available)

3. ImmutabilityViolationError means code tried to rewrite the audit trail.
   Treat it as a defect, not a user error.
"""


class AppError(Exception):
    """
    Base exception for all mill kernel and module errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "APP_ERROR"


# Validation-related exceptions


class ValidationError(AppError):
    """Caller input is malformed or breaks a business rule."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class MissingParameterError(ValidationError):
    """A required parameter was not supplied."""

    code: str = "MISSING_PARAMETER"

    def __init__(self, parameter: str):
        self.parameter = parameter
        super().__init__(f"{parameter} is required")


class InvalidQuantityError(ValidationError):
    """Quantity or meter value is out of range."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value, reason: str = "must be greater than 0"):
        self.field = field
        self.value = str(value)
        super().__init__(f"{field} {reason} (got {value})")


class InvalidModuleError(ValidationError):
    """Unknown production pipeline stage identifier."""

    code: str = "INVALID_MODULE"

    def __init__(self, module: str, valid_modules: list[str]):
        self.module = module
        self.valid_modules = valid_modules
        super().__init__(
            f"Invalid module '{module}'. Valid modules: {', '.join(valid_modules)}"
        )


class MeterExceedsInputError(ValidationError):
    """Processed + loss meter would exceed the entry's input meter."""

    code: str = "METER_EXCEEDS_INPUT"

    def __init__(self, entry_id: str, input_meter, processed_meter, loss_meter):
        self.entry_id = entry_id
        self.input_meter = str(input_meter)
        self.processed_meter = str(processed_meter)
        self.loss_meter = str(loss_meter)
        super().__init__(
            f"Processed + Loss cannot exceed input: "
            f"{processed_meter} + {loss_meter} > {input_meter}"
        )


class MeterRegressionError(ValidationError):
    """A recorded processed or loss meter would be reduced."""

    code: str = "METER_REGRESSION"

    def __init__(self, entry_id: str, field: str, recorded, requested):
        self.entry_id = entry_id
        self.field = field
        self.recorded = str(recorded)
        self.requested = str(requested)
        super().__init__(
            f"{field} cannot be reduced on entry {entry_id}: "
            f"recorded {recorded}, requested {requested}"
        )


class InsufficientInputMeterError(ValidationError):
    """A stage entry claims more input than the upstream stage produced."""

    code: str = "INSUFFICIENT_INPUT_METER"

    def __init__(self, lot_number: str, stage: str, available, requested):
        self.lot_number = lot_number
        self.stage = stage
        self.available = str(available)
        self.requested = str(requested)
        super().__init__(
            f"Insufficient input meter for lot {lot_number} at {stage}. "
            f"Available: {available}, Requested: {requested}"
        )


class ScrapAlreadyDisposedError(ValidationError):
    """Disposal has already been recorded for this scrap."""

    code: str = "SCRAP_ALREADY_DISPOSED"

    def __init__(self, scrap_id: str):
        self.scrap_id = scrap_id
        super().__init__("Scrap is already disposed")


class ProtectedFieldError(ValidationError):
    """An update attempted to change a field that is not editable."""

    code: str = "PROTECTED_FIELD"

    def __init__(self, entity_type: str, fields: list[str]):
        self.entity_type = entity_type
        self.fields = fields
        super().__init__(
            f"{entity_type} fields cannot be updated: {', '.join(fields)}"
        )


# Lookup-related exceptions


class NotFoundError(AppError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"


class InventoryItemNotFoundError(NotFoundError):
    """Inventory item with given ID was not found."""

    code: str = "INVENTORY_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__("Inventory item not found")


class ScrapNotFoundError(NotFoundError):
    """Scrap record with given ID was not found."""

    code: str = "SCRAP_NOT_FOUND"

    def __init__(self, scrap_id: str):
        self.scrap_id = scrap_id
        super().__init__("Scrap record not found")


class StageEntryNotFoundError(NotFoundError):
    """Production stage entry with given ID was not found."""

    code: str = "STAGE_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Production stage entry not found: {entry_id}")


# Tenant isolation


class ForbiddenError(AppError):
    """Entity exists but the caller may not act on it."""

    code: str = "FORBIDDEN"


class CrossTenantAccessError(ForbiddenError):
    """Entity belongs to a different company than the caller's."""

    code: str = "CROSS_TENANT_ACCESS"

    def __init__(self, entity_type: str, entity_id: str, company_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.company_id = company_id
        super().__init__(f"{entity_type} does not belong to this company")


# Stock-related exceptions


class StockError(AppError):
    """Base exception for stock bookkeeping errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """Requested quantity exceeds the item's current stock."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: str, available, requested):
        self.item_id = item_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock. Available: {_fmt(available)}, "
            f"Requested: {_fmt(requested)}"
        )


# Concurrency-related exceptions


class ConcurrencyError(AppError):
    """Base exception for concurrent-write conflicts."""

    code: str = "CONCURRENCY_ERROR"


class DuplicateDocumentNumberError(ConcurrencyError):
    """A generated document number collided and retries were exhausted."""

    code: str = "DUPLICATE_DOCUMENT_NUMBER"

    def __init__(self, document_type: str, document_number: str, attempts: int):
        self.document_type = document_type
        self.document_number = document_number
        self.attempts = attempts
        super().__init__(
            f"Could not allocate a unique {document_type} number "
            f"after {attempts} attempt(s); last tried {document_number}"
        )


# Immutability-related exceptions


class ImmutabilityError(AppError):
    """Base exception for append-only violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


def _fmt(value) -> str:
    """Render quantities without trailing zeros (20.000000000 -> 20)."""
    text = format(value, "f") if not isinstance(value, str) else value
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
