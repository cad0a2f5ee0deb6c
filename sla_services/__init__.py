"""
Orchestration services composing pure engines with kernel persistence.
"""

from sla_services.execution_session import (
    CheckpointResult,
    CompletedExecution,
    ExecutionSession,
)
from sla_services.reconciliation_service import ReconciliationService

__all__ = [
    "CheckpointResult",
    "CompletedExecution",
    "ExecutionSession",
    "ReconciliationService",
]
