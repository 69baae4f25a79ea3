"""
Agent Smith Entity Models
=========================
- BaseEntity: common fields (id, timestamps, active flag)
- Agents: AI agent configuration by domain and subtype
- Org structure: departments, positions, distribution rules
- Citizen requests: inbound eOtinish records
- Audit: activity log and simulated ledger
- Knowledge: RAG corpus
"""

from agentsmith.models.entities.base import Base, BaseEntity
from agentsmith.models.entities.agents import Agent, AgentType, AgentSubtype
from agentsmith.models.entities.org_structure import (
    Department,
    Position,
    OrganizationalRule,
    SourceType,
)
from agentsmith.models.entities.citizen_request import CitizenRequest, RequestStatus
from agentsmith.models.entities.audit import ActivityLog, ActivityLevel, LedgerRecord
from agentsmith.models.entities.knowledge import KnowledgeEntry

__all__ = [
    'Base',
    'BaseEntity',
    'Agent',
    'AgentType',
    'AgentSubtype',
    'Department',
    'Position',
    'OrganizationalRule',
    'SourceType',
    'CitizenRequest',
    'RequestStatus',
    'ActivityLog',
    'ActivityLevel',
    'LedgerRecord',
    'KnowledgeEntry',
]
