"""
Organizational structure: departments, positions and distribution rules.
"""

import enum

from sqlalchemy import Column, String, Text, Integer, Boolean, JSON, ForeignKey, Enum
from sqlalchemy.orm import relationship

from agentsmith.models.entities.base import BaseEntity


class SourceType(str, enum.Enum):
    """Kind of inbound item an organizational rule applies to."""
    CITIZEN_REQUEST = "citizen_request"
    MEETING = "meeting"
    DOCUMENT = "document"


class Department(BaseEntity):
    __tablename__ = 'departments'

    name = Column(String(200), nullable=False)
    code = Column(String(50), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    level = Column(Integer, default=0, nullable=False)
    parent_id = Column(String(36), ForeignKey('departments.id'), nullable=True)

    positions = relationship("Position", back_populates="department", lazy="selectin")


class Position(BaseEntity):
    __tablename__ = 'positions'

    name = Column(String(200), nullable=False)
    department_id = Column(String(36), ForeignKey('departments.id'), nullable=True)
    level = Column(Integer, default=0, nullable=False)  # lower = more senior
    can_approve = Column(Boolean, default=False, nullable=False)
    can_assign = Column(Boolean, default=False, nullable=False)

    department = relationship("Department", back_populates="positions")


class OrganizationalRule(BaseEntity):
    """
    Distribution rule. Either a keyword list (any keyword in
    subject+description matches) or a classification tag.
    """

    __tablename__ = 'organizational_rules'

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    source_type = Column(Enum(SourceType), nullable=False)
    keywords = Column(JSON, default=list)
    classification_type = Column(String(50), nullable=True)

    department_id = Column(String(36), ForeignKey('departments.id'), nullable=True)
    position_id = Column(String(36), ForeignKey('positions.id'), nullable=True)
    agent_id = Column(String(36), ForeignKey('agents.id'), nullable=True)

    sort_order = Column(Integer, default=0, nullable=False)
