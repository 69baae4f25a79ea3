"""
Activity logging for the agent pipeline.

record() is fire-and-forget: a failing audit write is reported through
the module logger and never interrupts the caller.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List

from agentsmith.models.database import get_db_context
from agentsmith.models.entities.audit import ActivityLog, ActivityLevel

logger = logging.getLogger(__name__)


class ActivityLogger(ABC):

    @abstractmethod
    def record(
        self,
        action: str,
        description: str = "",
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        level: ActivityLevel = ActivityLevel.INFO,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        pass


class SqlActivityLogger(ActivityLogger):
    """Writes ActivityLog rows, one short session per entry."""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory

    def record(self, action, description="", entity_type=None, entity_id=None,
               actor_id=None, level=ActivityLevel.INFO, details=None) -> None:
        try:
            with get_db_context(self.session_factory) as db:
                db.add(ActivityLog(
                    action=action,
                    level=level,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    actor_id=actor_id,
                    description=description,
                    details=details or {},
                ))
        except Exception as e:
            logger.error(f"Failed to write activity log '{action}': {e}")


class InMemoryActivityLogger(ActivityLogger):
    """Keeps entries in a list. Used by the CLI dry-run and in tests."""

    def __init__(self):
        self.entries: List[Dict[str, Any]] = []

    def record(self, action, description="", entity_type=None, entity_id=None,
               actor_id=None, level=ActivityLevel.INFO, details=None) -> None:
        self.entries.append({
            "action": action,
            "description": description,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "actor_id": actor_id,
            "level": level,
            "details": details or {},
        })

    def actions(self) -> List[str]:
        return [entry["action"] for entry in self.entries]
