"""
Pure calculation engines.

Engines take snapshots and parameters, return values, and never touch the
database, the clock or the filesystem.  Invalid input shape is reported as
``Unavailable`` rather than raised.
"""

from sla_engines.reconciliation import (
    DEFAULT_TOLERANCE_FACTOR,
    ReconciliationCalculator,
    ReconciliationResult,
)
from sla_engines.status import StatusClassifier, UrgencyBucket, following_months
from sla_engines.tracer import compute_input_fingerprint, traced_engine
from sla_engines.work_order import (
    ClientBlock,
    DocumentHeader,
    ExecutionReportBody,
    InspectionRow,
    InspectionTable,
    SignatureBlock,
    WorkOrderDocument,
    generate_work_order,
)

__all__ = [
    "DEFAULT_TOLERANCE_FACTOR",
    "ClientBlock",
    "DocumentHeader",
    "ExecutionReportBody",
    "InspectionRow",
    "InspectionTable",
    "ReconciliationCalculator",
    "ReconciliationResult",
    "SignatureBlock",
    "StatusClassifier",
    "UrgencyBucket",
    "WorkOrderDocument",
    "compute_input_fingerprint",
    "following_months",
    "generate_work_order",
    "traced_engine",
]
