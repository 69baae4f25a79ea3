"""
Citizen request (eOtinish) records.
"""

import enum

from sqlalchemy import Column, String, Text, Boolean, JSON, ForeignKey

from agentsmith.models.entities.base import BaseEntity


class RequestStatus(str, enum.Enum):
    NEW = "new"
    PROCESSING = "processing"
    IN_PROGRESS = "in_progress"
    WAITING = "waiting"
    COMPLETED = "completed"
    REJECTED = "rejected"


class CitizenRequest(BaseEntity):
    __tablename__ = 'citizen_requests'

    full_name = Column(String(200), nullable=False)
    contact_info = Column(String(200), nullable=True)
    request_type = Column(String(50), nullable=True)
    subject = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")
    source = Column(String(50), default="web", nullable=False)

    status = Column(String(20), default=RequestStatus.NEW.value, nullable=False)
    priority = Column(String(20), default="medium", nullable=False)

    # Routing
    department_id = Column(String(36), ForeignKey('departments.id'), nullable=True)
    position_id = Column(String(36), ForeignKey('positions.id'), nullable=True)
    assigned_to = Column(String(36), nullable=True)
    assigned_agent_id = Column(String(36), ForeignKey('agents.id'), nullable=True)

    # AI processing
    ai_processed = Column(Boolean, default=False, nullable=False)
    ai_classification = Column(String(50), nullable=True)
    ai_suggestion = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    response_text = Column(Text, nullable=True)

    # Ledger reference of the last processing record
    ledger_ref = Column(String(100), nullable=True)

    # `metadata` is reserved by the declarative base
    extra_data = Column(JSON, default=dict)
