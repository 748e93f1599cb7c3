"""
Property Document Tracker - Document Store

MongoDB (Motor) access for stored files and per-document-type status records.

Collections:
- property_documents: one record per uploaded file
- property_document_status: one record per (property_id, pipeline, doc_type),
  enforced by a unique index
- stage_financial_status: externally maintained payment status per stage
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
import uuid
import logging

from pymongo.errors import DuplicateKeyError, PyMongoError

from .completion import DocumentRecord, DocumentStatusRecord
from .tracker_config import DOCUMENTS_COLLECTION, STATUS_COLLECTION, FINANCIAL_COLLECTION

logger = logging.getLogger(__name__)

MAX_RECORDS = 1000


class UpsertResult(str, Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"   # Unique key already taken by a concurrent writer
    FAILURE = "failure"


class DocumentStore:
    """Read/write interface to the storage collaborator."""

    def __init__(self, db):
        self.db = db

    @property
    def documents(self):
        return getattr(self.db, DOCUMENTS_COLLECTION)

    @property
    def statuses(self):
        return getattr(self.db, STATUS_COLLECTION)

    @property
    def financials(self):
        return getattr(self.db, FINANCIAL_COLLECTION)

    async def create_indexes(self) -> None:
        await self.documents.create_index("id", unique=True)
        await self.documents.create_index([("property_id", 1), ("pipeline", 1), ("doc_type", 1)])
        await self.statuses.create_index(
            [("property_id", 1), ("pipeline", 1), ("doc_type", 1)],
            unique=True
        )
        await self.financials.create_index([("property_id", 1), ("pipeline", 1), ("stage_number", 1)])
        logger.info("Document store indexes created")

    # ==================== READS ====================

    async def get_documents(self, entity_id: str, pipeline: str, doc_type_key: str) -> List[DocumentRecord]:
        docs = await self.documents.find(
            {"property_id": entity_id, "pipeline": pipeline, "doc_type": doc_type_key},
            {"_id": 0}
        ).sort("uploaded_at", -1).to_list(MAX_RECORDS)
        return [DocumentRecord.from_dict(d) for d in docs]

    async def list_documents(self, entity_id: str, pipeline: str) -> List[DocumentRecord]:
        docs = await self.documents.find(
            {"property_id": entity_id, "pipeline": pipeline},
            {"_id": 0}
        ).sort("uploaded_at", -1).to_list(MAX_RECORDS)
        return [DocumentRecord.from_dict(d) for d in docs]

    async def get_status(self, entity_id: str, pipeline: str, doc_type_key: str) -> Optional[DocumentStatusRecord]:
        status = await self.statuses.find_one(
            {"property_id": entity_id, "pipeline": pipeline, "doc_type": doc_type_key},
            {"_id": 0}
        )
        return DocumentStatusRecord.from_dict(status) if status else None

    async def list_statuses(self, entity_id: str, pipeline: str) -> List[DocumentStatusRecord]:
        statuses = await self.statuses.find(
            {"property_id": entity_id, "pipeline": pipeline},
            {"_id": 0}
        ).to_list(MAX_RECORDS)
        return [DocumentStatusRecord.from_dict(s) for s in statuses]

    async def list_financial_statuses(self, entity_id: str, pipeline: str) -> List[Dict[str, Any]]:
        return await self.financials.find(
            {"property_id": entity_id, "pipeline": pipeline},
            {"_id": 0}
        ).to_list(MAX_RECORDS)

    # ==================== WRITES ====================

    async def upsert_status(
        self,
        entity_id: str,
        pipeline: str,
        doc_type_key: str,
        is_not_applicable: Optional[bool] = None,
        note: Optional[str] = None
    ) -> UpsertResult:
        """
        Upsert the status record for one document type. Only the fields passed
        (not None) are changed; a new record gets defaults for the rest.

        A duplicate-key error means another writer inserted the record first;
        it is reported as CONFLICT and never retried here.
        """
        now = datetime.now(timezone.utc).isoformat()
        query = {"property_id": entity_id, "pipeline": pipeline, "doc_type": doc_type_key}

        set_fields: Dict[str, Any] = {"updated_at": now}
        on_insert: Dict[str, Any] = {"id": str(uuid.uuid4()), "created_at": now}

        if is_not_applicable is not None:
            set_fields["is_na"] = is_not_applicable
        else:
            on_insert["is_na"] = False

        if note is not None:
            set_fields["note"] = note or None
        else:
            on_insert["note"] = None

        try:
            await self.statuses.update_one(
                query,
                {"$set": set_fields, "$setOnInsert": on_insert},
                upsert=True
            )
        except DuplicateKeyError:
            logger.info("Status for %s/%s/%s already written by another writer",
                        entity_id, pipeline, doc_type_key)
            return UpsertResult.CONFLICT
        except PyMongoError as e:
            logger.error("Failed to upsert status for %s/%s/%s: %s",
                         entity_id, pipeline, doc_type_key, str(e))
            return UpsertResult.FAILURE

        return UpsertResult.SUCCESS
