from sqlalchemy import Column, String, Text, JSON

from agentsmith.models.entities.base import BaseEntity


class KnowledgeEntry(BaseEntity):
    """Knowledge-base passage used for prompt enrichment."""

    __tablename__ = 'knowledge_entries'

    text = Column(Text, nullable=False)
    source = Column(String(200), nullable=True)
    tags = Column(JSON, default=list)
    extra_data = Column(JSON, default=dict)
