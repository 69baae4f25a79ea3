import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from agentsmith.core.config import settings
from agentsmith.core.exceptions import LedgerWriteError, ModelRateLimitError
from agentsmith.models.schemas.tasks import (
    Task,
    TaskType,
    CLASSIFICATION_CATEGORIES,
    PRIORITIES,
    normalize_priority,
)
from agentsmith.services.agent_runner import (
    AgentTaskRunner,
    extract_json,
    ledger_summary,
    normalize_category,
)
from agentsmith.services.config_store import StaticConfigStore

from tests.conftest import CLASSIFIER, RAG_AGENT


def _task(task_type=TaskType.CLASSIFICATION, agent_id="agent-classifier", **kwargs):
    fields = {
        "entity_type": "citizen_request",
        "entity_id": "req-1",
        "content": "Жалоба на отсутствие освещения",
        "metadata": {"subject": "Освещение"},
    }
    fields.update(kwargs)
    return Task(task_type=task_type, agent_id=agent_id, **fields)


class TestAgentTaskRunner:

    @pytest.mark.asyncio
    async def test_classification_result(self, runner, gateway):
        result = await runner.run(_task())

        assert result.success is True
        assert result.agent_id == "agent-classifier"
        assert result.result["classification"] in CLASSIFICATION_CATEGORIES
        assert result.result["priority"] in PRIORITIES
        assert result.result["needs_human_review"] is False
        gateway.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_non_json_classification_degrades(self, runner, gateway):
        gateway.send.return_value = "Это жалоба, приоритет высокий"
        result = await runner.run(_task())

        assert result.success is True
        assert result.result["needs_human_review"] is True
        assert result.result["classification"] == "general"
        assert result.result["raw_response"] == "Это жалоба, приоритет высокий"

    @pytest.mark.asyncio
    async def test_fenced_json_is_parsed(self, runner, gateway):
        gateway.send.return_value = '```json\n{"classification": "жалоба", "priority": "срочный"}\n```'
        result = await runner.run(_task())
        assert result.result["classification"] == "complaint"
        assert result.result["priority"] == "urgent"

    @pytest.mark.asyncio
    async def test_unknown_category_is_flagged(self, runner, gateway):
        gateway.send.return_value = json.dumps({"classification": "spam", "priority": "low"})
        result = await runner.run(_task())
        assert result.result["classification"] == "general"
        assert result.result["needs_human_review"] is True

    @pytest.mark.asyncio
    async def test_ledger_failure_does_not_fail_task(self, config_store, gateway, activity):
        ledger = MagicMock()
        ledger.append = AsyncMock(side_effect=LedgerWriteError("ledger offline"))
        runner = AgentTaskRunner(config_store, gateway, ledger=ledger, activity_logger=activity)

        result = await runner.run(_task())

        assert result.success is True
        assert result.result["classification"] == "complaint"
        assert result.ledger_ref is None
        ledger.append.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ledger_receives_bounded_summary(self, runner, ledger):
        result = await runner.run(_task())
        assert result.ledger_ref.startswith("0x")
        entry = ledger.entries[-1]
        assert entry.action == "agent_classification"
        assert entry.metadata["classification"] == "complaint"
        assert "summary" not in entry.metadata

    @pytest.mark.asyncio
    async def test_gateway_error_becomes_failed_result(self, runner, gateway, activity):
        gateway.send.side_effect = ModelRateLimitError("quota exceeded", "openai", "gpt-4o")
        result = await runner.run(_task())

        assert result.success is False
        assert "quota exceeded" in result.error
        assert activity.actions() == ["agent_task_start", "agent_task_failed"]

    @pytest.mark.asyncio
    async def test_inactive_and_missing_agents(self, runner, gateway):
        inactive = await runner.run(_task(agent_id="agent-inactive"))
        missing = await runner.run(_task(agent_id="agent-nope"))

        assert inactive.success is False and "inactive" in inactive.error
        assert missing.success is False and "not found" in missing.error
        gateway.send.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("task_type,key", [
        (TaskType.SUMMARIZATION, "summary"),
        (TaskType.RESPONSE, "response"),
        (TaskType.TRANSLATION, "translation"),
        (TaskType.DOCUMENT, "analysis"),
    ])
    async def test_text_tasks_return_trimmed_text(self, runner, gateway, task_type, key):
        gateway.send.return_value = "  Уважаемый заявитель!  \n"
        result = await runner.run(_task(task_type=task_type))
        assert result.result == {key: "Уважаемый заявитель!"}

    @pytest.mark.asyncio
    async def test_document_json_variant(self, runner, gateway):
        gateway.send.return_value = '{"facts": ["Договор подписан"]}'
        result = await runner.run(_task(task_type=TaskType.DOCUMENT, metadata={"format": "json"}))
        assert result.result == {"facts": ["Договор подписан"]}

    @pytest.mark.asyncio
    async def test_rag_agent_gets_context(self, runner, gateway):
        gateway.send.return_value = "Срок рассмотрения 15 дней"
        await runner.run(_task(
            task_type=TaskType.RAG,
            agent_id=RAG_AGENT.id,
            content="штраф обжалование",
            metadata={},
        ))
        prompt = gateway.send.call_args.args[0]
        assert prompt.startswith("штраф обжалование\n\nКонтекст из базы знаний:")

    @pytest.mark.asyncio
    async def test_rag_limit_depends_on_task_type(self, runner):
        runner.retriever = MagicMock()
        runner.retriever.search = AsyncMock(return_value=[])

        await runner.run(_task(agent_id=RAG_AGENT.id))
        await runner.run(_task(task_type=TaskType.RESPONSE, agent_id=RAG_AGENT.id))

        limits = [c.args[1] for c in runner.retriever.search.call_args_list]
        assert limits == [settings.RAG_CLASSIFICATION_LIMIT, settings.RAG_RESPONSE_LIMIT]
        assert "Освещение" in runner.retriever.search.call_args_list[0].args[0]

    @pytest.mark.asyncio
    async def test_agent_settings_override_selector(self, gateway, ledger):
        agent = CLASSIFIER.model_copy(update={"model": "claude-3-haiku-20240307", "temperature": 0.0})
        runner = AgentTaskRunner(StaticConfigStore(agents=[agent]), gateway, ledger=ledger)

        await runner.run(_task(priority="urgent"))

        params = gateway.send.call_args.args[1]
        assert params.model == "claude-3-haiku-20240307"
        assert params.provider == "anthropic"
        assert params.temperature == 0.0
        assert params.max_tokens == 1000

    @pytest.mark.asyncio
    async def test_activity_trail(self, runner, activity):
        await runner.run(_task())
        assert activity.actions() == ["agent_task_start", "agent_task_complete"]
        assert all(e["entity_id"] == "req-1" for e in activity.entries)


class TestParsingHelpers:

    def test_extract_json_with_chatter(self):
        assert extract_json('Ответ: {"a": 1} спасибо') == {"a": 1}

    def test_extract_json_rejects_lists(self):
        from agentsmith.core.exceptions import ModelResponseParseError

        with pytest.raises(ModelResponseParseError):
            extract_json("[1, 2]")

    def test_normalizers(self):
        assert normalize_category("Жалоба") == ("complaint", True)
        assert normalize_category(None) == ("general", False)
        assert normalize_priority("жоғары") == "high"
        assert normalize_priority("whatever") == "medium"

    def test_task_priority_is_normalized(self):
        assert _task(priority="normal").priority == "medium"
        assert _task(priority="Срочный").priority == "urgent"
        assert _task(priority="whatever").priority == "medium"
        assert _task().priority is None

    def test_ledger_summary_shapes(self):
        assert ledger_summary(TaskType.CLASSIFICATION, {"classification": "appeal", "priority": "low", "summary": "x"}) == {
            "classification": "appeal", "priority": "low",
        }
        short = ledger_summary(TaskType.RESPONSE, {"response": "Ответ"})
        assert short["preview"].startswith('{"response"')
        assert len(ledger_summary(TaskType.RESPONSE, {"response": "a" * 900})["preview"]) == settings.LEDGER_PREVIEW_CHARS
        assert ledger_summary(TaskType.RESPONSE, {"response": "a" * 2000}) == {"result_size": 2016}
