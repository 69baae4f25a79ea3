"""
Configuration store: agents, organizational rules, departments,
positions and the knowledge corpus.

Services read an immutable ConfigSnapshot. The snapshot is loaded on
first use and replaced only by an explicit reload().
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from agentsmith.models.database import get_db_context
from agentsmith.models.entities.agents import Agent, AgentType, AgentSubtype
from agentsmith.models.entities.knowledge import KnowledgeEntry
from agentsmith.models.entities.org_structure import Department, Position, OrganizationalRule, SourceType
from agentsmith.models.schemas.org import (
    AgentDefinition,
    RuleDefinition,
    DepartmentInfo,
    PositionInfo,
    KnowledgeItem,
)

logger = logging.getLogger(__name__)


class ConfigSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    agents: Tuple[AgentDefinition, ...] = ()
    rules: Tuple[RuleDefinition, ...] = ()
    departments: Tuple[DepartmentInfo, ...] = ()
    positions: Tuple[PositionInfo, ...] = ()
    corpus: Tuple[KnowledgeItem, ...] = ()
    loaded_at: datetime = Field(default_factory=datetime.utcnow)

    def get_agent(self, agent_id: str) -> Optional[AgentDefinition]:
        return next((agent for agent in self.agents if agent.id == agent_id), None)

    def find_agent(
        self,
        agent_type: AgentType,
        subtypes: Sequence[AgentSubtype] = (),
    ) -> Optional[AgentDefinition]:
        """First active agent of the type, trying subtypes in order, then generic."""
        candidates = [a for a in self.agents if a.agent_type == agent_type and a.is_active]
        for subtype in (*subtypes, AgentSubtype.GENERIC):
            for agent in candidates:
                if agent.subtype == subtype:
                    return agent
        return None

    def rules_for(self, source_type: SourceType) -> List[RuleDefinition]:
        """Active rules for a source type, in evaluation order."""
        return [rule for rule in self.rules if rule.is_active and rule.source_type == source_type]

    def get_department(self, department_id: str) -> Optional[DepartmentInfo]:
        return next((d for d in self.departments if d.id == department_id), None)

    def get_department_by_code(self, code: str) -> Optional[DepartmentInfo]:
        return next((d for d in self.departments if d.code == code), None)

    def get_position(self, position_id: str) -> Optional[PositionInfo]:
        return next((p for p in self.positions if p.id == position_id), None)

    def department_managers(self, department_id: str) -> List[PositionInfo]:
        """Positions that can approve, most senior (lowest level) first."""
        managers = [p for p in self.positions if p.department_id == department_id and p.can_approve]
        return sorted(managers, key=lambda p: p.level)


class ConfigStore(ABC):
    """Owns the snapshot lifecycle: load on first use, explicit reload."""

    def __init__(self):
        self._snapshot: Optional[ConfigSnapshot] = None
        self._lock = threading.Lock()

    @abstractmethod
    def _fetch(self) -> ConfigSnapshot:
        pass

    def load(self) -> ConfigSnapshot:
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._fetch()
                logger.info(
                    f"Configuration loaded: {len(self._snapshot.agents)} agents, "
                    f"{len(self._snapshot.rules)} rules, {len(self._snapshot.departments)} departments"
                )
            return self._snapshot

    def reload(self) -> ConfigSnapshot:
        with self._lock:
            self._snapshot = None
        return self.load()

    @property
    def snapshot(self) -> ConfigSnapshot:
        return self.load()

    def corpus(self) -> Tuple[KnowledgeItem, ...]:
        return self.snapshot.corpus


class StaticConfigStore(ConfigStore):
    """Configuration held in memory; reload() re-reads the same lists."""

    def __init__(
        self,
        agents: Sequence[AgentDefinition] = (),
        rules: Sequence[RuleDefinition] = (),
        departments: Sequence[DepartmentInfo] = (),
        positions: Sequence[PositionInfo] = (),
        corpus: Sequence[KnowledgeItem] = (),
    ):
        super().__init__()
        self.agents = list(agents)
        self.rules = list(rules)
        self.departments = list(departments)
        self.positions = list(positions)
        self.corpus_items = list(corpus)

    def _fetch(self) -> ConfigSnapshot:
        return ConfigSnapshot(
            agents=tuple(self.agents),
            rules=tuple(sorted(self.rules, key=lambda r: r.sort_order)),
            departments=tuple(self.departments),
            positions=tuple(self.positions),
            corpus=tuple(self.corpus_items),
        )


class SqlConfigStore(ConfigStore):
    """Configuration read from the database tables."""

    def __init__(self, session_factory=None):
        super().__init__()
        self.session_factory = session_factory

    def _fetch(self) -> ConfigSnapshot:
        with get_db_context(self.session_factory) as db:
            agents = db.query(Agent).order_by(Agent.created_at).all()
            rules = (
                db.query(OrganizationalRule)
                .order_by(OrganizationalRule.sort_order, OrganizationalRule.created_at)
                .all()
            )
            departments = db.query(Department).filter(Department.is_active.is_(True)).all()
            positions = db.query(Position).filter(Position.is_active.is_(True)).all()
            entries = db.query(KnowledgeEntry).filter(KnowledgeEntry.is_active.is_(True)).all()

            return ConfigSnapshot(
                agents=tuple(AgentDefinition.model_validate(a) for a in agents),
                rules=tuple(RuleDefinition.model_validate(r) for r in rules),
                departments=tuple(DepartmentInfo.model_validate(d) for d in departments),
                positions=tuple(PositionInfo.model_validate(p) for p in positions),
                corpus=tuple(
                    KnowledgeItem(text=e.text, tags=e.tags or [], source=e.source, metadata=e.extra_data or {})
                    for e in entries
                ),
            )
