"""
AI agent configuration.
Agents are read-only during task execution; edits go through the config store.
"""

import enum

from sqlalchemy import Column, String, Text, Integer, Float, Boolean, Enum

from agentsmith.models.entities.base import BaseEntity


class AgentType(str, enum.Enum):
    """Domain an agent serves."""
    CITIZEN_REQUESTS = "citizen_requests"
    DOCUMENT_PROCESSING = "document_processing"
    MEETING_PROTOCOLS = "meeting_protocols"
    BLOCKCHAIN = "blockchain"


class AgentSubtype(str, enum.Enum):
    """Role of an agent inside its domain."""
    CLASSIFICATION = "classification"
    RESPONSE = "response"
    ROUTING = "routing"
    GENERIC = "generic"


class Agent(BaseEntity):
    __tablename__ = 'agents'

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    agent_type = Column(Enum(AgentType), nullable=False)
    subtype = Column(Enum(AgentSubtype), default=AgentSubtype.GENERIC, nullable=False)

    # Model configuration; empty values fall back to the model selector
    model = Column(String(100), nullable=True)
    temperature = Column(Float, nullable=True)
    max_tokens = Column(Integer, nullable=True)

    prompt_template = Column(Text, nullable=True)
    system_prompt = Column(Text, nullable=True)
    use_rag = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<Agent {self.name} ({self.agent_type.value}/{self.subtype.value})>"
