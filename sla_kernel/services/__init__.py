"""Kernel write services.  Every service flushes; the caller commits."""

from sla_kernel.services.base import BaseService
from sla_kernel.services.blob_storage import (
    BlobStorage,
    InMemoryBlobStorage,
    LocalDirectoryBlobStorage,
    StoredBlob,
    signature_key,
)
from sla_kernel.services.checklist_store import (
    ChecklistStore,
    ImportRow,
    clean_cell,
    parse_import_rows,
)
from sla_kernel.services.contract_record_service import ContractRecordService

__all__ = [
    "BaseService",
    "BlobStorage",
    "ChecklistStore",
    "ContractRecordService",
    "ImportRow",
    "InMemoryBlobStorage",
    "LocalDirectoryBlobStorage",
    "StoredBlob",
    "clean_cell",
    "parse_import_rows",
    "signature_key",
]
