"""
Citizen request processing orchestrator.

process_new():       classify -> department lookup -> org rules -> persist -> ledger
generate_response(): draft an official reply from the stored classification
assign_by_org():     re-run organizational routing only

None of the public operations raise. On failure the last persisted state
of the request is returned and the attempt is recorded as process_error.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any

from agentsmith.core.exceptions import AgentNotFoundError, RequestNotFoundError, TaskFailedError
from agentsmith.models.entities.agents import AgentType, AgentSubtype
from agentsmith.models.entities.audit import ActivityLevel
from agentsmith.models.entities.citizen_request import RequestStatus
from agentsmith.models.schemas.ledger import LedgerEntry
from agentsmith.models.schemas.org import AgentDefinition
from agentsmith.models.schemas.requests import RequestRecord, RoutingOutcome
from agentsmith.models.schemas.tasks import Task, TaskType
from agentsmith.services.org_router import OrgRouter

logger = logging.getLogger(__name__)

ENTITY_TYPE = "citizen_request"

# Category -> department code
CATEGORY_DEPARTMENTS = {
    "complaint": "citizens",
    "proposal": "chancellery",
    "application": "citizens",
    "appeal": "legal",
    "gratitude": "chancellery",
    "information_request": "chancellery",
    "general": "citizens",
}


class RequestProcessor:

    def __init__(self, store, config_store, runner, router: Optional[OrgRouter] = None,
                 ledger=None, activity_logger=None):
        self.store = store
        self.config_store = config_store
        self.runner = runner
        self.router = router or OrgRouter(config_store, runner=runner, activity_logger=activity_logger)
        self.ledger = ledger
        self.activity = activity_logger

    # ═══════════════════════════════════════════════════════════
    # Public operations
    # ═══════════════════════════════════════════════════════════

    async def process_new(self, request_id: str) -> Optional[RequestRecord]:
        """Classify, route and persist a new request."""
        self._log("process_start", request_id, "Начало автоматической обработки обращения гражданина")
        request = None
        try:
            request = self._load(request_id)
            agent = self._resolve_agent(AgentSubtype.CLASSIFICATION)

            result = await self.runner.run(Task(
                task_type=TaskType.CLASSIFICATION,
                entity_type=ENTITY_TYPE,
                entity_id=request.id,
                agent_id=agent.id,
                content=self._request_text(request),
                metadata=self._request_metadata(request),
                priority=request.priority,
            ))
            if not result.success:
                raise TaskFailedError(result.error or "classification failed")

            classification = result.result
            self._log("process_classify", request_id,
                      f"Обращение классифицировано как {classification['classification']}",
                      details={
                          "classification": classification["classification"],
                          "priority": classification["priority"],
                          "confidence": classification.get("confidence"),
                          "needs_human_review": classification.get("needs_human_review"),
                      })

            candidate = request.model_copy(update=self._classification_updates(agent, classification))

            outcome = await self.router.route(candidate)
            candidate = self._routed_request(outcome)
            self._log("process_route", request_id,
                      f"Применено правило «{outcome.rule.name}»" if outcome.processed
                      else "Правила распределения не применялись",
                      details={
                          "rule_id": outcome.rule.id if outcome.rule else None,
                          "department_id": candidate.department_id,
                          "position_id": candidate.position_id,
                      })

            saved = self.store.save(candidate)

            ledger_ref = await self._append_ledger(saved, "citizen_request_processed")
            if ledger_ref:
                saved = self.store.save(saved.model_copy(update={"ledger_ref": ledger_ref}))

            self._log("process_complete", request_id, "Завершена автоматическая обработка обращения",
                      details={"ledger_ref": ledger_ref})
            return saved

        except Exception as e:
            return self._fail(request_id, request, e)

    async def generate_response(self, request_id: str) -> Optional[RequestRecord]:
        """Draft a reply; status is left for the operator to change."""
        request = None
        try:
            request = self._load(request_id)
            agent = self._resolve_agent(AgentSubtype.RESPONSE)

            metadata = self._request_metadata(request)
            metadata.update({
                "classification": request.ai_classification,
                "summary": request.summary,
            })
            result = await self.runner.run(Task(
                task_type=TaskType.RESPONSE,
                entity_type=ENTITY_TYPE,
                entity_id=request.id,
                agent_id=agent.id,
                content=request.description or request.subject,
                metadata={k: v for k, v in metadata.items() if v},
                priority=request.priority,
            ))
            if not result.success:
                raise TaskFailedError(result.error or "response generation failed")

            note = f"Проект ответа сформирован ИИ-агентом {agent.name}"
            saved = self.store.save(request.model_copy(update={
                "response_text": result.result.get("response", ""),
                "ai_suggestion": f"{request.ai_suggestion}\n{note}" if request.ai_suggestion else note,
            }))
            self._log("response_generated", request_id, note, details={"agent_id": agent.id})
            return saved

        except Exception as e:
            return self._fail(request_id, request, e)

    async def assign_by_org(self, request_id: str) -> Optional[RequestRecord]:
        """Apply organizational rules to an existing request."""
        request = None
        try:
            request = self._load(request_id)
            outcome = await self.router.route(request)
            if not outcome.processed:
                self._log("process_route", request_id, "Подходящее правило распределения не найдено")
                return request

            saved = self.store.save(self._routed_request(outcome))
            self._log("process_route", request_id, f"Применено правило «{outcome.rule.name}»",
                      details={"rule_id": outcome.rule.id, "suggestions": outcome.suggestions})
            return saved

        except Exception as e:
            return self._fail(request_id, request, e)

    # ═══════════════════════════════════════════════════════════
    # Helpers
    # ═══════════════════════════════════════════════════════════

    def _load(self, request_id: str) -> RequestRecord:
        request = self.store.get(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    def _resolve_agent(self, subtype: AgentSubtype) -> AgentDefinition:
        agent = self.config_store.snapshot.find_agent(AgentType.CITIZEN_REQUESTS, [subtype])
        if agent is None:
            raise AgentNotFoundError(f"{AgentType.CITIZEN_REQUESTS.value}/{subtype.value}")
        return agent

    @staticmethod
    def _routed_request(outcome: RoutingOutcome) -> RequestRecord:
        """Routed request with the rule's position as assignee, unless an agent took it."""
        request = outcome.request
        if outcome.processed and outcome.rule.position_id and not outcome.rule.agent_id:
            request = request.model_copy(update={"assigned_to": outcome.rule.position_id})
        return request

    @staticmethod
    def _request_text(request: RequestRecord) -> str:
        return f"{request.subject}\n\n{request.description}".strip()

    @staticmethod
    def _request_metadata(request: RequestRecord) -> Dict[str, Any]:
        metadata = {
            "subject": request.subject,
            "full_name": request.full_name,
            "request_type": request.request_type,
            "source": request.metadata.get("source"),
        }
        return {k: v for k, v in metadata.items() if v}

    def _classification_updates(self, agent: AgentDefinition, classification: Dict[str, Any]) -> Dict[str, Any]:
        snapshot = self.config_store.snapshot
        category = classification["classification"]

        suggestion_lines = []
        if classification.get("suggestion"):
            suggestion_lines.append(classification["suggestion"])
        if classification.get("needs_human_review"):
            suggestion_lines.append("Требуется проверка классификации специалистом")

        updates = {
            "status": RequestStatus.PROCESSING.value,
            "ai_processed": True,
            "ai_classification": category,
            "priority": classification["priority"],
            "summary": classification.get("summary") or None,
            "assigned_agent_id": agent.id,
        }

        department = snapshot.get_department_by_code(CATEGORY_DEPARTMENTS.get(category, "citizens"))
        if department is not None:
            updates["department_id"] = department.id
            suggestion_lines.append(f"Рекомендуемое подразделение: {department.name}")
            managers = snapshot.department_managers(department.id)
            if managers:
                updates["position_id"] = managers[0].id
                updates["assigned_to"] = managers[0].id
                suggestion_lines.append(f"Ответственный: {managers[0].name}")
        else:
            logger.warning(f"No department configured for category '{category}'")

        updates["ai_suggestion"] = "\n".join(suggestion_lines) or None
        return updates

    async def _append_ledger(self, request: RequestRecord, action: str) -> Optional[str]:
        if self.ledger is None:
            return None
        try:
            ref = await self.ledger.append(LedgerEntry(
                entity_type=ENTITY_TYPE,
                entity_id=request.id,
                action=action,
                metadata={
                    "classification": request.ai_classification,
                    "priority": request.priority,
                    "department_id": request.department_id,
                    "assigned_to": request.assigned_to,
                    "timestamp": datetime.utcnow().isoformat(),
                },
            ))
        except Exception as e:
            logger.error(f"Ledger append for request {request.id} failed: {e}")
            return None
        self._log("blockchain_record", request.id, f"Результат обработки записан в реестр с хешем {ref[:10]}...",
                  details={"ledger_ref": ref})
        return ref

    def _fail(self, request_id: str, request: Optional[RequestRecord], error: Exception) -> Optional[RequestRecord]:
        logger.error(f"Processing of request {request_id} failed: {error}")
        self._log("process_error", request_id, f"Ошибка при обработке обращения: {error}",
                  level=ActivityLevel.ERROR, details={"error_type": type(error).__name__})
        try:
            return self.store.get(request_id) or request
        except Exception as e:
            logger.error(f"Could not reload request {request_id}: {e}")
            return request

    def _log(self, action: str, request_id: str, description: str,
             level: ActivityLevel = ActivityLevel.INFO, details: Optional[Dict[str, Any]] = None):
        if self.activity is None:
            return
        self.activity.record(
            action=action,
            description=description,
            entity_type=ENTITY_TYPE,
            entity_id=request_id,
            level=level,
            details=details or {},
        )
