"""
Activity log and the simulated ledger.
"""

import enum

from sqlalchemy import Column, String, Text, Integer, JSON, Enum

from agentsmith.models.entities.base import BaseEntity


class ActivityLevel(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ActivityLog(BaseEntity):
    """Operational trail: one row per pipeline step."""

    __tablename__ = 'activity_logs'

    action = Column(String(50), nullable=False, index=True)
    level = Column(Enum(ActivityLevel), default=ActivityLevel.INFO, nullable=False)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(String(36), nullable=True, index=True)
    actor_id = Column(String(36), nullable=True)
    description = Column(Text, nullable=False, default="")
    details = Column(JSON, default=dict)


class LedgerRecord(BaseEntity):
    """
    Append-only audit record. Each row carries the hash of its
    predecessor, so tampering with a row breaks every later hash.
    """

    __tablename__ = 'ledger_records'

    sequence = Column(Integer, unique=True, nullable=False)
    tx_hash = Column(String(100), unique=True, nullable=False, index=True)
    prev_hash = Column(String(100), nullable=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(36), nullable=True, index=True)
    action = Column(String(100), nullable=False)
    details = Column(JSON, default=dict)
