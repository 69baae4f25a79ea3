"""
Shared fixtures: in-memory SQLite, a static organization and a fake
model gateway. Nothing here talks to a real provider.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import json
from unittest.mock import MagicMock, AsyncMock

import pytest
from sqlalchemy.orm import sessionmaker

from agentsmith.models.database import build_engine, init_db
from agentsmith.models.entities.agents import AgentType, AgentSubtype
from agentsmith.models.entities.org_structure import SourceType
from agentsmith.models.schemas.org import AgentDefinition, RuleDefinition, DepartmentInfo, PositionInfo
from agentsmith.models.schemas.requests import RequestRecord
from agentsmith.services.activity_logger import InMemoryActivityLogger
from agentsmith.services.agent_runner import AgentTaskRunner
from agentsmith.services.config_store import StaticConfigStore
from agentsmith.services.knowledge_retriever import KnowledgeRetriever
from agentsmith.services.ledger import InMemoryLedger
from agentsmith.services.request_processor import RequestProcessor
from agentsmith.services.request_store import InMemoryRequestStore

CLASSIFICATION_RESPONSE = json.dumps({
    "classification": "complaint",
    "confidence": 0.91,
    "priority": "high",
    "summary": "Во дворе не работает уличное освещение",
    "keywords": ["освещение", "двор"],
    "needs_human_review": False,
}, ensure_ascii=False)

CLASSIFIER = AgentDefinition(
    id="agent-classifier",
    name="Классификатор обращений",
    agent_type=AgentType.CITIZEN_REQUESTS,
    subtype=AgentSubtype.CLASSIFICATION,
)
RESPONDER = AgentDefinition(
    id="agent-responder",
    name="Подготовка ответов",
    agent_type=AgentType.CITIZEN_REQUESTS,
    subtype=AgentSubtype.RESPONSE,
)
DOCUMENT_AGENT = AgentDefinition(
    id="agent-documents",
    name="Анализ документов",
    agent_type=AgentType.DOCUMENT_PROCESSING,
)
RAG_AGENT = AgentDefinition(
    id="agent-rag",
    name="Консультант",
    agent_type=AgentType.CITIZEN_REQUESTS,
    subtype=AgentSubtype.ROUTING,
    use_rag=True,
)
INACTIVE_AGENT = AgentDefinition(
    id="agent-inactive",
    name="Отключенный агент",
    agent_type=AgentType.CITIZEN_REQUESTS,
    subtype=AgentSubtype.CLASSIFICATION,
    is_active=False,
)

DEPARTMENTS = [
    DepartmentInfo(id="dept-citizens", name="Отдел по работе с гражданами", code="citizens", level=1),
    DepartmentInfo(id="dept-legal", name="Юридический отдел", code="legal", level=1),
    DepartmentInfo(id="dept-chancellery", name="Канцелярия", code="chancellery", level=1),
    DepartmentInfo(id="dept-communal", name="Отдел ЖКХ", code="communal", level=1),
    DepartmentInfo(id="3", name="Отдел информатизации", code="it", level=1),
]

POSITIONS = [
    PositionInfo(id="pos-citizens-spec", name="Специалист", department_id="dept-citizens", level=2),
    PositionInfo(id="pos-citizens-head", name="Руководитель отдела", department_id="dept-citizens",
                 level=1, can_approve=True, can_assign=True),
    PositionInfo(id="pos-communal-head", name="Руководитель ЖКХ", department_id="dept-communal",
                 level=1, can_approve=True, can_assign=True),
]

COMMUNAL_RULE = RuleDefinition(
    id="rule-communal",
    name="Распределение коммунальных запросов",
    source_type=SourceType.CITIZEN_REQUEST,
    keywords=["коммунальные", "свет", "вода", "отопление", "электричество", "ремонт", "освещение", "дорога"],
    department_id="dept-communal",
    position_id="pos-communal-head",
    sort_order=1,
)


@pytest.fixture
def session_factory():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite://")
    init_db(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def activity():
    return InMemoryActivityLogger()


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def config_store():
    return StaticConfigStore(
        agents=[CLASSIFIER, RESPONDER, DOCUMENT_AGENT, RAG_AGENT, INACTIVE_AGENT],
        rules=[COMMUNAL_RULE],
        departments=DEPARTMENTS,
        positions=POSITIONS,
    )


@pytest.fixture
def gateway():
    """Fake gateway answering every call with a classification JSON."""
    fake = MagicMock()
    fake.send = AsyncMock(return_value=CLASSIFICATION_RESPONSE)
    return fake


@pytest.fixture
def failing_gateway():
    fake = MagicMock()
    fake.send = AsyncMock(side_effect=RuntimeError("provider unavailable"))
    return fake


@pytest.fixture
def retriever():
    return KnowledgeRetriever()


@pytest.fixture
def runner(config_store, gateway, retriever, ledger, activity):
    return AgentTaskRunner(
        config_store=config_store,
        gateway=gateway,
        retriever=retriever,
        ledger=ledger,
        activity_logger=activity,
    )


@pytest.fixture
def lighting_request():
    return RequestRecord(
        id="req-1",
        full_name="Ахметов Ерлан",
        contact_info="+7 701 000 00 00",
        subject="Жалоба на отсутствие освещения",
        description="Во дворе дома 12 уже неделю нет света, не горят фонари.",
    )


@pytest.fixture
def request_store(lighting_request):
    return InMemoryRequestStore([lighting_request])


@pytest.fixture
def processor(request_store, config_store, runner, ledger, activity):
    return RequestProcessor(
        store=request_store,
        config_store=config_store,
        runner=runner,
        ledger=ledger,
        activity_logger=activity,
    )
