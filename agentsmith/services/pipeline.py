"""
Wires the services together over one database.
"""

from dataclasses import dataclass
from typing import Optional

from agentsmith.services.activity_logger import SqlActivityLogger
from agentsmith.services.agent_runner import AgentTaskRunner
from agentsmith.services.config_store import SqlConfigStore
from agentsmith.services.knowledge_retriever import KnowledgeRetriever
from agentsmith.services.ledger import SqlLedger
from agentsmith.services.model_provider import ModelGateway
from agentsmith.services.org_router import OrgRouter
from agentsmith.services.processing_queue import ProcessingQueue
from agentsmith.services.request_processor import RequestProcessor
from agentsmith.services.request_store import SqlRequestStore


@dataclass
class Pipeline:
    store: SqlRequestStore
    config_store: SqlConfigStore
    gateway: ModelGateway
    runner: AgentTaskRunner
    router: OrgRouter
    processor: RequestProcessor
    queue: ProcessingQueue
    ledger: SqlLedger


def build_pipeline(session_factory=None, gateway: Optional[ModelGateway] = None) -> Pipeline:
    activity = SqlActivityLogger(session_factory)
    config_store = SqlConfigStore(session_factory)
    ledger = SqlLedger(session_factory)
    store = SqlRequestStore(session_factory)
    gateway = gateway or ModelGateway(activity_logger=activity)
    retriever = KnowledgeRetriever(corpus_provider=config_store.corpus, activity_logger=activity)

    runner = AgentTaskRunner(
        config_store=config_store,
        gateway=gateway,
        retriever=retriever,
        ledger=ledger,
        activity_logger=activity,
    )
    router = OrgRouter(config_store, runner=runner, activity_logger=activity)
    processor = RequestProcessor(
        store=store,
        config_store=config_store,
        runner=runner,
        router=router,
        ledger=ledger,
        activity_logger=activity,
    )
    return Pipeline(
        store=store,
        config_store=config_store,
        gateway=gateway,
        runner=runner,
        router=router,
        processor=processor,
        queue=ProcessingQueue(processor),
        ledger=ledger,
    )
