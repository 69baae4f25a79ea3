"""
Task schemas for the agent runner.
Tasks and results are frozen: a task never changes once dispatched.
"""

import enum
import uuid
from typing import Optional, Dict, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Priority = Literal["low", "medium", "high", "urgent"]

PRIORITIES = ("low", "medium", "high", "urgent")

# Russian and Kazakh labels, legacy values from imported requests
PRIORITY_ALIASES = {
    "жоғары": "high",
    "высокий": "high",
    "орташа": "medium",
    "средний": "medium",
    "normal": "medium",
    "төмен": "low",
    "низкий": "low",
    "шұғыл": "urgent",
    "срочный": "urgent",
    "critical": "urgent",
}


def normalize_priority(value: Any) -> str:
    """Map any priority label onto PRIORITIES; unknown values become medium."""
    text = str(value or "").strip().lower()
    if text in PRIORITIES:
        return text
    return PRIORITY_ALIASES.get(text, "medium")


# eOtinish request categories
CLASSIFICATION_CATEGORIES = (
    "complaint",
    "proposal",
    "application",
    "appeal",
    "gratitude",
    "information_request",
    "general",
)


class TaskType(str, enum.Enum):
    CLASSIFICATION = "classification"
    SUMMARIZATION = "summarization"
    RESPONSE = "response"
    ANALYTICS = "analytics"
    TRANSLATION = "translation"
    CITIZEN_REQUEST = "citizen_request"
    DOCUMENT = "document"
    PROTOCOL = "protocol"
    RAG = "rag"


class Task(BaseModel):
    """A unit of work for a single agent."""

    model_config = ConfigDict(frozen=True)

    task_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    task_type: TaskType
    entity_type: str
    entity_id: str
    agent_id: str
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    priority: Optional[Priority] = None

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value):
        if value is None:
            return None
        return normalize_priority(value)


class TaskResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    task_id: str
    agent_id: str
    result: Optional[Dict[str, Any]] = None
    ledger_ref: Optional[str] = None
    error: Optional[str] = None


class ModelSelection(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str
    provider: str
    max_tokens: int
    temperature: float
