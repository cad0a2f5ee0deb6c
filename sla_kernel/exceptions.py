"""
Typed Exception Hierarchy for the SLA Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The service-record lifecycle has three kinds of failure that callers treat
differently:

  - ValidationError   -> the user corrects input, the workflow stays put
  - PersistenceError  -> surfaced with a retry affordance, never retried silently
  - ChecklistImportError -> the existing checklist is untouched, a count-based
                            message is shown

Callers catch by type and read structured attributes; they never parse
message strings:

    try:
        session.finalize()
    except MissingSignatureError as e:
        show_hint(e.code)                # "MISSING_SIGNATURE"
    except PersistenceError as e:
        offer_retry(e.operation)         # "signature_upload", "contract_update", ...

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SlaKernelError (base)
    |
    +-- ValidationError
    |   +-- MissingSignerError
    |   +-- MissingSignatureError
    |   +-- InvalidActualHoursError
    |   +-- InvalidPlannedHoursError
    |   +-- PlannedHoursMissingError
    |   +-- ReconciliationStateError
    |   +-- InvalidChecklistFieldError
    |   +-- CategoryMismatchError
    |   +-- ConfirmationRequiredError
    |   +-- InvalidPlannedMonthError
    |
    +-- PersistenceError
    |   +-- BlobStorageError
    |
    +-- ChecklistImportError
    |
    +-- NotFoundError
    |   +-- ContractNotFoundError
    |   +-- ChecklistItemNotFoundError
    |
    +-- SessionStateError
    |
    +-- CapabilityError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|------------------------------------------
Validation   | MISSING_SIGNER            | Finalize without a signer name
             | MISSING_SIGNATURE         | Finalize without a captured signature
             | INVALID_ACTUAL_HOURS      | actual_hours absent, negative, not a number,
             |                           | or finer than 0.01
             | INVALID_PLANNED_HOURS     | hours_planned negative or finer than 0.01
             | PLANNED_HOURS_MISSING     | Reconciliation on a contract w/o planned hours
             | RECONCILIATION_STATE      | Commit on unexecuted / already calculated
             | INVALID_CHECKLIST_FIELD   | Unknown check field name
             | CATEGORY_MISMATCH         | Checklist op on a report-based contract
             | CONFIRMATION_REQUIRED     | Wipe / year reset without confirmation
             | INVALID_PLANNED_MONTH     | planned_month outside 1..12
-------------|---------------------------|------------------------------------------
Persistence  | PERSISTENCE_ERROR         | Contract / checklist write failed
             | BLOB_STORAGE_ERROR        | Signature upload failed
-------------|---------------------------|------------------------------------------
Import       | IMPORT_ERROR              | Zero valid rows in a bulk import
-------------|---------------------------|------------------------------------------
Lookup       | CONTRACT_NOT_FOUND        | Contract ID doesn't exist
             | CHECKLIST_ITEM_NOT_FOUND  | Item ID doesn't exist in the session
-------------|---------------------------|------------------------------------------
Workflow     | SESSION_STATE             | Operation illegal in the current stage
-------------|---------------------------|------------------------------------------
Capability   | CAPABILITY_DENIED         | Actor role lacks the capability
-------------|---------------------------|------------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT  | Stale contract version (optimistic mode)

===============================================================================
DESIGN DECISIONS
===============================================================================

1. The import failure is named ChecklistImportError so that it never
   shadows Python's builtin ImportError.  Its code is still IMPORT_ERROR.

2. Pure engines (status classifier, reconciliation classifier) never raise
   for bad input shape.  They return ``Unavailable`` and the service layer
   decides whether that becomes a ValidationError.

===============================================================================
"""


class SlaKernelError(Exception):
    """
    Base exception for all SLA kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "SLA_KERNEL_ERROR"


# Validation errors


class ValidationError(SlaKernelError):
    """Input rejected; the workflow state does not advance."""

    code: str = "VALIDATION_ERROR"


class MissingSignerError(ValidationError):
    """Finalization requested without a signer name."""

    code: str = "MISSING_SIGNER"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"Signer name is required to finalize contract {contract_id}")


class MissingSignatureError(ValidationError):
    """Finalization requested without a captured signature."""

    code: str = "MISSING_SIGNATURE"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"A captured signature is required to finalize contract {contract_id}")


class InvalidActualHoursError(ValidationError):
    """Submitted actual hours are missing or not a non-negative number."""

    code: str = "INVALID_ACTUAL_HOURS"

    def __init__(self, contract_id: str, value: object):
        self.contract_id = contract_id
        self.value = repr(value)
        super().__init__(f"Invalid actual hours for contract {contract_id}: {value!r}")


class PlannedHoursMissingError(ValidationError):
    """Contract has no positive planned hours to reconcile against."""

    code: str = "PLANNED_HOURS_MISSING"

    def __init__(self, contract_id: str, hours_planned: object):
        self.contract_id = contract_id
        self.hours_planned = repr(hours_planned)
        super().__init__(
            f"Contract {contract_id} has no positive planned hours "
            f"(hours_planned={hours_planned!r}); reconciliation unavailable"
        )


class InvalidPlannedHoursError(ValidationError):
    """Planned hours negative or with digits below the stored 0.01."""

    code: str = "INVALID_PLANNED_HOURS"

    def __init__(self, hours_planned: object):
        self.hours_planned = repr(hours_planned)
        super().__init__(
            f"Planned hours must be non-negative with at most two decimals, got {hours_planned!r}"
        )


class ReconciliationStateError(ValidationError):
    """Contract is not in the pending reconciliation pool."""

    code: str = "RECONCILIATION_STATE"

    def __init__(self, contract_id: str, is_executed: bool, calculation_done: bool):
        self.contract_id = contract_id
        self.is_executed = is_executed
        self.calculation_done = calculation_done
        super().__init__(
            f"Contract {contract_id} is not pending reconciliation "
            f"(executed={is_executed}, calculation_done={calculation_done})"
        )


class InvalidChecklistFieldError(ValidationError):
    """Unknown inspection check field."""

    code: str = "INVALID_CHECKLIST_FIELD"

    def __init__(self, field: str, allowed: tuple[str, ...]):
        self.field = field
        self.allowed = allowed
        super().__init__(
            f"Unknown checklist field '{field}'; expected one of {', '.join(allowed)}"
        )


class CategoryMismatchError(ValidationError):
    """Operation does not apply to the contract's category."""

    code: str = "CATEGORY_MISMATCH"

    def __init__(self, contract_id: str, category: str, operation: str):
        self.contract_id = contract_id
        self.category = category
        self.operation = operation
        super().__init__(
            f"Operation '{operation}' is not available for contract "
            f"{contract_id} in category '{category}'"
        )


class ConfirmationRequiredError(ValidationError):
    """Irreversible operation invoked without explicit confirmation."""

    code: str = "CONFIRMATION_REQUIRED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Operation '{operation}' is irreversible and requires confirmed=True")


class InvalidPlannedMonthError(ValidationError):
    """Planned month outside 1..12."""

    code: str = "INVALID_PLANNED_MONTH"

    def __init__(self, planned_month: object):
        self.planned_month = repr(planned_month)
        super().__init__(f"Planned month must be between 1 and 12, got {planned_month!r}")


# Persistence errors


class PersistenceError(SlaKernelError):
    """A remote write (contract, checklist or signature) failed."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, detail: str, contract_id: str | None = None):
        self.operation = operation
        self.detail = detail
        self.contract_id = contract_id
        super().__init__(f"Persistence failure during {operation}: {detail}")


class BlobStorageError(PersistenceError):
    """Blob storage rejected or lost a write."""

    code: str = "BLOB_STORAGE_ERROR"


# Import errors


class ChecklistImportError(SlaKernelError):
    """Bulk checklist import produced no valid rows."""

    code: str = "IMPORT_ERROR"

    def __init__(self, contract_id: str, rows_seen: int, rows_imported: int = 0):
        self.contract_id = contract_id
        self.rows_seen = rows_seen
        self.rows_imported = rows_imported
        super().__init__(
            f"Imported {rows_imported} of {rows_seen} rows for contract "
            f"{contract_id}: no valid checklist rows found"
        )


# Lookup errors


class NotFoundError(SlaKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class ContractNotFoundError(NotFoundError):
    """Service contract with given ID was not found."""

    code: str = "CONTRACT_NOT_FOUND"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"Service contract not found: {contract_id}")


class ChecklistItemNotFoundError(NotFoundError):
    """Checklist item with given ID was not found."""

    code: str = "CHECKLIST_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Checklist item not found: {item_id}")


# Workflow errors


class SessionStateError(SlaKernelError):
    """Operation is not allowed in the session's current stage."""

    code: str = "SESSION_STATE"

    def __init__(self, action: str, stage: str):
        self.action = action
        self.stage = stage
        super().__init__(f"Cannot {action} while execution session is {stage}")


# Capability errors


class CapabilityError(SlaKernelError):
    """Actor's role does not grant the requested capability."""

    code: str = "CAPABILITY_DENIED"

    def __init__(self, actor_id: str, role: str, capability: str):
        self.actor_id = actor_id
        self.role = role
        self.capability = capability
        super().__init__(f"Actor {actor_id} with role '{role}' lacks capability '{capability}'")


# Concurrency errors


class ConcurrencyError(SlaKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, expected_version: int, actual_version: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"expected version {expected_version}, found {actual_version}"
        )
