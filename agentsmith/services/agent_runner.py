"""
Agent task runner.
Executes one Task against one Agent and always returns a TaskResult.

Flow:
1. Resolve the agent and require it to be active
2. Build the prompt
3. Enrich with knowledge-base context when the agent uses RAG
4. Call the model with selector parameters (agent values override)
5. Parse the response by task type
6. Append a bounded summary to the ledger (failures are logged only)
"""

import json
import logging
import re
from typing import Optional, Dict, Any, Tuple

from agentsmith.core.config import settings
from agentsmith.core.exceptions import (
    AgentNotFoundError,
    AgentInactiveError,
    ModelResponseParseError,
)
from agentsmith.models.entities.audit import ActivityLevel
from agentsmith.models.schemas.ledger import LedgerEntry
from agentsmith.models.schemas.org import AgentDefinition
from agentsmith.models.schemas.tasks import (
    Task,
    TaskResult,
    TaskType,
    ModelSelection,
    CLASSIFICATION_CATEGORIES,
    normalize_priority,
)
from agentsmith.services.knowledge_retriever import format_context
from agentsmith.services.model_provider import resolve_provider
from agentsmith.services.model_selector import ModelSelector, model_selector
from agentsmith.services.prompt_builder import PromptBuilder, prompt_builder

logger = logging.getLogger(__name__)

STRUCTURED_TASKS = {
    TaskType.CLASSIFICATION,
    TaskType.ANALYTICS,
    TaskType.PROTOCOL,
    TaskType.CITIZEN_REQUEST,
}
CLASSIFYING_TASKS = {TaskType.CLASSIFICATION, TaskType.CITIZEN_REQUEST}

TEXT_RESULT_KEYS = {
    TaskType.SUMMARIZATION: "summary",
    TaskType.RESPONSE: "response",
    TaskType.TRANSLATION: "translation",
    TaskType.DOCUMENT: "analysis",
    TaskType.RAG: "answer",
}

# Russian and Kazakh labels seen in model output and eOtinish imports
CATEGORY_ALIASES = {
    "шағым": "complaint",
    "жалоба": "complaint",
    "ұсыныс": "proposal",
    "предложение": "proposal",
    "request": "application",
    "сұрау": "application",
    "запрос": "application",
    "заявление": "application",
    "шағымдану": "appeal",
    "обращение": "appeal",
    "обжалование": "appeal",
    "алғыс": "gratitude",
    "благодарность": "gratitude",
    "info": "information_request",
    "ақпарат": "information_request",
    "информация": "information_request",
    "запрос информации": "information_request",
}

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def normalize_category(value: Any) -> Tuple[str, bool]:
    """(category, recognized). Unrecognized values become 'general'."""
    text = str(value or "").strip().lower()
    if text in CLASSIFICATION_CATEGORIES:
        return text, True
    if text in CATEGORY_ALIASES:
        return CATEGORY_ALIASES[text], True
    return "general", False


def extract_json(raw: str) -> Dict[str, Any]:
    """Parse a JSON object from model output, tolerating code fences and chatter."""
    text = _FENCE_RE.sub("", (raw or "").strip())
    try:
        data = json.loads(text)
    except ValueError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ModelResponseParseError(raw)
        try:
            data = json.loads(text[start:end + 1])
        except ValueError:
            raise ModelResponseParseError(raw)
    if not isinstance(data, dict):
        raise ModelResponseParseError(raw)
    return data


def degraded_result(task_type: TaskType, raw: str) -> Dict[str, Any]:
    if task_type in CLASSIFYING_TASKS:
        return {
            "classification": "general",
            "priority": "medium",
            "confidence": 0.0,
            "summary": "",
            "keywords": [],
            "needs_human_review": True,
            "raw_response": raw,
        }
    return {"needs_human_review": True, "raw_response": raw}


def _confidence(value: Any) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return 0.0


def shape_classification(data: Dict[str, Any]) -> Dict[str, Any]:
    category, recognized = normalize_category(data.get("classification") or data.get("category"))
    keywords = data.get("keywords") or []
    if isinstance(keywords, str):
        keywords = [k.strip() for k in keywords.split(",") if k.strip()]
    result = {
        "classification": category,
        "priority": normalize_priority(data.get("priority")),
        "confidence": _confidence(data.get("confidence", 0.0)),
        "summary": str(data.get("summary") or ""),
        "keywords": [str(k) for k in keywords],
        "needs_human_review": bool(data.get("needs_human_review", False)) or not recognized,
    }
    if data.get("suggestion"):
        result["suggestion"] = str(data["suggestion"])
    return result


def parse_response(task: Task, raw: str) -> Dict[str, Any]:
    """Task-type specific parsing. JSON failures degrade, they do not raise."""
    structured = task.task_type in STRUCTURED_TASKS or (
        task.task_type == TaskType.DOCUMENT and task.metadata.get("format") == "json"
    )
    if not structured:
        return {TEXT_RESULT_KEYS.get(task.task_type, "output"): (raw or "").strip()}

    try:
        data = extract_json(raw)
    except ModelResponseParseError as e:
        logger.warning(f"Task {task.task_id}: {e}, returning degraded result")
        return degraded_result(task.task_type, e.raw_response)

    if task.task_type in CLASSIFYING_TASKS:
        return shape_classification(data)
    return data


def ledger_summary(task_type: TaskType, result: Dict[str, Any]) -> Dict[str, Any]:
    """Size-bounded view of a result for the ledger."""
    if task_type in CLASSIFYING_TASKS and "classification" in result:
        return {"classification": result["classification"], "priority": result.get("priority")}
    serialized = json.dumps(result, ensure_ascii=False, default=str)
    if len(serialized) > settings.LEDGER_MAX_RESULT_CHARS:
        return {"result_size": len(serialized)}
    return {"preview": serialized[:settings.LEDGER_PREVIEW_CHARS]}


class AgentTaskRunner:
    """Runs tasks for configured agents. run() never raises."""

    def __init__(
        self,
        config_store,
        gateway,
        retriever=None,
        ledger=None,
        activity_logger=None,
        selector: Optional[ModelSelector] = None,
        builder: Optional[PromptBuilder] = None,
    ):
        self.config_store = config_store
        self.gateway = gateway
        self.retriever = retriever
        self.ledger = ledger
        self.activity = activity_logger
        self.selector = selector or model_selector
        self.builder = builder or prompt_builder

    async def run(self, task: Task) -> TaskResult:
        self._record(task, "agent_task_start", f"Начало обработки задачи {task.task_type.value}")

        try:
            agent = self._resolve_agent(task.agent_id)
            prompt = self.builder.build(agent, task.task_type, task.content, task.metadata)
            if agent.use_rag:
                prompt = await self._enrich(prompt, task)
            params = self._model_params(agent, task)
            raw = await self.gateway.send(prompt, params, system_prompt=agent.system_prompt)
            result = parse_response(task, raw)
        except Exception as e:
            logger.error(f"Task {task.task_id} ({task.task_type.value}) failed: {e}")
            self._record(
                task, "agent_task_failed", f"Ошибка обработки задачи: {e}",
                level=ActivityLevel.ERROR, details={"error_type": type(e).__name__},
            )
            return TaskResult(success=False, task_id=task.task_id, agent_id=task.agent_id, error=str(e))

        ledger_ref = await self._append_ledger(task, result)

        self._record(task, "agent_task_complete", f"Задача {task.task_type.value} выполнена агентом {agent.name}",
                     details={"model": params.model, "ledger_ref": ledger_ref})
        return TaskResult(
            success=True,
            task_id=task.task_id,
            agent_id=task.agent_id,
            result=result,
            ledger_ref=ledger_ref,
        )

    def _resolve_agent(self, agent_id: str) -> AgentDefinition:
        agent = self.config_store.snapshot.get_agent(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        if not agent.is_active:
            raise AgentInactiveError(agent_id)
        return agent

    async def _enrich(self, prompt: str, task: Task) -> str:
        if self.retriever is None:
            return prompt
        query = " ".join(
            part for part in (
                task.content,
                task.metadata.get("subject"),
                task.metadata.get("classification"),
            ) if part
        )
        if task.task_type in (TaskType.RESPONSE, TaskType.RAG):
            limit = settings.RAG_RESPONSE_LIMIT
        else:
            limit = settings.RAG_CLASSIFICATION_LIMIT

        passages = await self.retriever.search(query, limit)
        if not passages:
            return prompt
        logger.debug(f"Task {task.task_id}: {len(passages)} knowledge passages added")
        return f"{prompt}\n\n{format_context(passages)}"

    def _model_params(self, agent: AgentDefinition, task: Task) -> ModelSelection:
        priority = task.priority or task.metadata.get("priority")
        selection = self.selector.select(task.task_type, task.content, priority)
        model = agent.model or selection.model
        return ModelSelection(
            model=model,
            provider=resolve_provider(model).value,
            max_tokens=agent.max_tokens or selection.max_tokens,
            temperature=agent.temperature if agent.temperature is not None else selection.temperature,
        )

    async def _append_ledger(self, task: Task, result: Dict[str, Any]) -> Optional[str]:
        if self.ledger is None:
            return None
        entry = LedgerEntry(
            entity_type=task.entity_type,
            entity_id=task.entity_id,
            action=f"agent_{task.task_type.value}",
            metadata={
                "task_id": task.task_id,
                "agent_id": task.agent_id,
                **ledger_summary(task.task_type, result),
            },
        )
        try:
            return await self.ledger.append(entry)
        except Exception as e:
            logger.error(f"Ledger append for task {task.task_id} failed: {e}")
            return None

    def _record(self, task: Task, action: str, description: str,
                level: ActivityLevel = ActivityLevel.INFO, details: Optional[Dict[str, Any]] = None):
        if self.activity is None:
            return
        self.activity.record(
            action=action,
            description=description,
            entity_type=task.entity_type,
            entity_id=task.entity_id,
            actor_id=task.agent_id,
            level=level,
            details={"task_id": task.task_id, "task_type": task.task_type.value, **(details or {})},
        )
