"""
Citizen request snapshots and routing outcomes.
"""

from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field

from agentsmith.models.entities.org_structure import SourceType
from agentsmith.models.schemas.org import RuleDefinition


class RequestRecord(BaseModel):
    """
    Snapshot of a citizen request. Services never mutate a snapshot in
    place; they derive a new one with model_copy(update=...).
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: str = ""
    contact_info: Optional[str] = None
    request_type: Optional[str] = None
    subject: str = ""
    description: str = ""
    source_type: SourceType = SourceType.CITIZEN_REQUEST

    status: str = "new"
    priority: str = "medium"

    department_id: Optional[str] = None
    position_id: Optional[str] = None
    assigned_to: Optional[str] = None
    assigned_agent_id: Optional[str] = None

    ai_processed: bool = False
    ai_classification: Optional[str] = None
    ai_suggestion: Optional[str] = None
    summary: Optional[str] = None
    response_text: Optional[str] = None
    ledger_ref: Optional[str] = None

    metadata: Dict[str, Any] = Field(default_factory=dict)


class RoutingOutcome(BaseModel):
    processed: bool
    request: RequestRecord
    rule: Optional[RuleDefinition] = None
    suggestions: List[str] = Field(default_factory=list)
