"""
Citizen request persistence.
Updates are whole-record: save() writes every field of the snapshot.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional, Dict

from agentsmith.core.exceptions import RequestNotFoundError
from agentsmith.models.database import get_db_context
from agentsmith.models.entities.citizen_request import CitizenRequest
from agentsmith.models.schemas.requests import RequestRecord

logger = logging.getLogger(__name__)

# Fields written back by save(); identity and contact data are not
WRITABLE_FIELDS = (
    "status",
    "priority",
    "department_id",
    "position_id",
    "assigned_to",
    "assigned_agent_id",
    "ai_processed",
    "ai_classification",
    "ai_suggestion",
    "summary",
    "response_text",
    "ledger_ref",
)


def to_record(entity: CitizenRequest) -> RequestRecord:
    return RequestRecord(
        id=entity.id,
        full_name=entity.full_name or "",
        contact_info=entity.contact_info,
        request_type=entity.request_type,
        subject=entity.subject or "",
        description=entity.description or "",
        status=entity.status,
        priority=entity.priority or "medium",
        department_id=entity.department_id,
        position_id=entity.position_id,
        assigned_to=entity.assigned_to,
        assigned_agent_id=entity.assigned_agent_id,
        ai_processed=bool(entity.ai_processed),
        ai_classification=entity.ai_classification,
        ai_suggestion=entity.ai_suggestion,
        summary=entity.summary,
        response_text=entity.response_text,
        ledger_ref=entity.ledger_ref,
        metadata=dict(entity.extra_data or {}),
    )


class RequestStore(ABC):

    @abstractmethod
    def get(self, request_id: str) -> Optional[RequestRecord]:
        pass

    @abstractmethod
    def save(self, record: RequestRecord) -> RequestRecord:
        """Persist the record; raises RequestNotFoundError for unknown ids."""


class InMemoryRequestStore(RequestStore):

    def __init__(self, records=()):
        self._records: Dict[str, RequestRecord] = {r.id: r for r in records}
        self._lock = threading.Lock()

    def add(self, record: RequestRecord) -> RequestRecord:
        with self._lock:
            self._records[record.id] = record
        return record

    def get(self, request_id: str) -> Optional[RequestRecord]:
        return self._records.get(request_id)

    def save(self, record: RequestRecord) -> RequestRecord:
        with self._lock:
            if record.id not in self._records:
                raise RequestNotFoundError(record.id)
            self._records[record.id] = record
        return record


class SqlRequestStore(RequestStore):

    def __init__(self, session_factory=None):
        self.session_factory = session_factory

    def get(self, request_id: str) -> Optional[RequestRecord]:
        with get_db_context(self.session_factory) as db:
            entity = db.query(CitizenRequest).filter(CitizenRequest.id == request_id).first()
            return to_record(entity) if entity else None

    def save(self, record: RequestRecord) -> RequestRecord:
        with get_db_context(self.session_factory) as db:
            entity = db.query(CitizenRequest).filter(CitizenRequest.id == record.id).first()
            if entity is None:
                raise RequestNotFoundError(record.id)
            for field in WRITABLE_FIELDS:
                setattr(entity, field, getattr(record, field))
            db.flush()
            return to_record(entity)

    def create(self, **fields) -> RequestRecord:
        """Insert a new request; used by intake and seeding."""
        with get_db_context(self.session_factory) as db:
            entity = CitizenRequest(**fields)
            db.add(entity)
            db.flush()
            logger.info(f"Citizen request {entity.id} created")
            return to_record(entity)
