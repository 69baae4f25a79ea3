from typing import Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, Field


class LedgerEntry(BaseModel):
    """Audit record to append. The ledger treats metadata as opaque."""

    model_config = ConfigDict(frozen=True)

    entity_type: str
    entity_id: Optional[str] = None
    action: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
