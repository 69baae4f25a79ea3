import pytest

from agentsmith.models.entities.agents import AgentType, AgentSubtype
from agentsmith.models.entities.org_structure import SourceType
from agentsmith.models.schemas.org import AgentDefinition
from agentsmith.services.config_store import StaticConfigStore, SqlConfigStore
from agentsmith.services.knowledge_retriever import SAMPLE_CORPUS
from agentsmith.services.seed import seed_defaults, DEPARTMENTS, AGENTS, RULES

from tests.conftest import CLASSIFIER, RESPONDER, POSITIONS, DEPARTMENTS as TEST_DEPARTMENTS


GENERIC = AgentDefinition(
    id="agent-generic",
    name="Универсальный агент",
    agent_type=AgentType.CITIZEN_REQUESTS,
    subtype=AgentSubtype.GENERIC,
)


class TestConfigSnapshot:

    def test_find_agent_prefers_subtype(self):
        snapshot = StaticConfigStore(agents=[GENERIC, RESPONDER, CLASSIFIER]).snapshot
        assert snapshot.find_agent(AgentType.CITIZEN_REQUESTS, [AgentSubtype.CLASSIFICATION]) == CLASSIFIER

    def test_find_agent_falls_back_to_generic(self):
        snapshot = StaticConfigStore(agents=[RESPONDER, GENERIC]).snapshot
        assert snapshot.find_agent(AgentType.CITIZEN_REQUESTS, [AgentSubtype.CLASSIFICATION]) == GENERIC
        assert snapshot.find_agent(AgentType.MEETING_PROTOCOLS) is None

    def test_inactive_agents_are_not_resolved(self):
        inactive = CLASSIFIER.model_copy(update={"is_active": False})
        snapshot = StaticConfigStore(agents=[inactive]).snapshot
        assert snapshot.find_agent(AgentType.CITIZEN_REQUESTS, [AgentSubtype.CLASSIFICATION]) is None
        assert snapshot.get_agent(CLASSIFIER.id) == inactive

    def test_department_managers_by_seniority(self):
        snapshot = StaticConfigStore(departments=TEST_DEPARTMENTS, positions=POSITIONS).snapshot
        managers = snapshot.department_managers("dept-citizens")
        assert [p.id for p in managers] == ["pos-citizens-head"]
        assert snapshot.get_department_by_code("legal").id == "dept-legal"


class TestConfigStoreLifecycle:

    def test_snapshot_is_stable_until_reload(self):
        store = StaticConfigStore(agents=[CLASSIFIER])
        before = store.snapshot

        store.agents.append(RESPONDER)
        assert store.snapshot is before
        assert store.snapshot.get_agent(RESPONDER.id) is None

        after = store.reload()
        assert after is not before
        assert after.get_agent(RESPONDER.id) == RESPONDER


class TestSqlConfigStore:

    def test_reads_seeded_organization(self, session_factory):
        assert seed_defaults(session_factory) is True
        snapshot = SqlConfigStore(session_factory).snapshot

        assert len(snapshot.agents) == len(AGENTS)
        assert len(snapshot.departments) == len(DEPARTMENTS)
        assert len(snapshot.positions) == 2 * len(DEPARTMENTS)
        assert len(snapshot.corpus) == len(SAMPLE_CORPUS)
        assert [r.name for r in snapshot.rules] == [name for name, *_ in RULES]

        communal = snapshot.get_department_by_code("communal")
        managers = snapshot.department_managers(communal.id)
        assert len(managers) == 1
        assert managers[0].can_approve is True

        citizen_rules = snapshot.rules_for(SourceType.CITIZEN_REQUEST)
        assert len(citizen_rules) == 3
        assert all(r.position_id for r in citizen_rules)

        classifier = snapshot.find_agent(AgentType.CITIZEN_REQUESTS, [AgentSubtype.CLASSIFICATION])
        assert classifier.use_rag is True

    def test_seed_is_idempotent(self, session_factory):
        assert seed_defaults(session_factory) is True
        assert seed_defaults(session_factory) is False
        assert len(SqlConfigStore(session_factory).snapshot.agents) == len(AGENTS)
