"""
Read-only views of the organizational configuration.
"""

from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from agentsmith.models.entities.agents import AgentType, AgentSubtype
from agentsmith.models.entities.org_structure import SourceType


class AgentDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    name: str
    agent_type: AgentType
    subtype: AgentSubtype = AgentSubtype.GENERIC
    is_active: bool = True
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    prompt_template: Optional[str] = None
    system_prompt: Optional[str] = None
    use_rag: bool = False


class RuleDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    name: str
    source_type: SourceType
    is_active: bool = True
    keywords: List[str] = Field(default_factory=list)
    classification_type: Optional[str] = None
    department_id: Optional[str] = None
    position_id: Optional[str] = None
    agent_id: Optional[str] = None
    sort_order: int = 0

    @field_validator("keywords", mode="before")
    @classmethod
    def _keywords_list(cls, value):
        return value or []


class DepartmentInfo(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    name: str
    code: str
    level: int = 0
    parent_id: Optional[str] = None


class PositionInfo(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    name: str
    department_id: Optional[str] = None
    level: int = 0
    can_approve: bool = False
    can_assign: bool = False


class KnowledgeItem(BaseModel):
    """One corpus entry as seen by the retriever."""

    model_config = ConfigDict(frozen=True)

    text: str
    tags: List[str] = Field(default_factory=list)
    source: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RetrievedPassage(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    score: float = Field(ge=0.0, le=1.0)
    source: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
