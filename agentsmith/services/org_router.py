"""
Organizational routing: assigns department, position and agent to a
request from the first matching distribution rule.
"""

import logging
from typing import Optional, List

from agentsmith.core.exceptions import RuleApplicationError
from agentsmith.models.entities.audit import ActivityLevel
from agentsmith.models.schemas.org import RuleDefinition
from agentsmith.models.schemas.requests import RequestRecord, RoutingOutcome
from agentsmith.models.schemas.tasks import Task, TaskType

logger = logging.getLogger(__name__)


def matches(rule: RuleDefinition, request: RequestRecord) -> bool:
    """
    Keyword rules match on subject+description. Tag rules compare with
    the recorded AI classification, so they never match before the
    request has been classified.
    """
    if rule.keywords:
        text = f"{request.subject} {request.description}".lower()
        return any(keyword.lower() in text for keyword in rule.keywords if keyword)
    if rule.classification_type:
        if not request.ai_classification:
            return False
        return rule.classification_type.lower() == request.ai_classification.lower()
    return False


class OrgRouter:

    def __init__(self, config_store, runner=None, activity_logger=None):
        self.config_store = config_store
        self.runner = runner
        self.activity = activity_logger

    def find_rule(self, request: RequestRecord) -> Optional[RuleDefinition]:
        for rule in self.config_store.snapshot.rules_for(request.source_type):
            if matches(rule, request):
                return rule
        return None

    async def route(self, request: RequestRecord) -> RoutingOutcome:
        rule = self.find_rule(request)
        if rule is None:
            logger.debug(f"No organizational rule matched request {request.id}")
            return RoutingOutcome(processed=False, request=request)

        logger.info(f"Request {request.id} matched rule '{rule.name}'")
        snapshot = self.config_store.snapshot
        updates = {}
        suggestions: List[str] = []

        if rule.department_id:
            department = snapshot.get_department(rule.department_id)
            updates["department_id"] = rule.department_id
            suggestions.append(
                f"Направлено в {department.name if department else 'подразделение ' + rule.department_id} "
                f"по правилу «{rule.name}»"
            )

        if rule.position_id:
            position = snapshot.get_position(rule.position_id)
            updates["position_id"] = rule.position_id
            suggestions.append(
                f"Назначено на должность {position.name if position else rule.position_id}"
            )

        routed = request.model_copy(update=updates)

        if rule.agent_id:
            routed = routed.model_copy(update={
                "assigned_agent_id": rule.agent_id,
                "ai_processed": True,
                "assigned_to": None,
            })
            routed = await self._apply_agent(rule, routed, suggestions)

        if suggestions:
            note = "\n".join(suggestions)
            routed = routed.model_copy(update={
                "ai_suggestion": f"{routed.ai_suggestion}\n{note}" if routed.ai_suggestion else note,
            })

        return RoutingOutcome(processed=True, request=routed, rule=rule, suggestions=suggestions)

    async def _apply_agent(self, rule: RuleDefinition, request: RequestRecord,
                           suggestions: List[str]) -> RequestRecord:
        """Run the rule's agent to refresh classification and summary."""
        try:
            if self.runner is None:
                raise RuleApplicationError(rule.id, "no task runner configured")
            try:
                result = await self.runner.run(Task(
                    task_type=TaskType.CLASSIFICATION,
                    entity_type="citizen_request",
                    entity_id=request.id,
                    agent_id=rule.agent_id,
                    content=f"{request.subject}\n\n{request.description}".strip(),
                    metadata={"subject": request.subject, "rule": rule.name},
                    priority=request.priority,
                ))
            except Exception as e:
                raise RuleApplicationError(rule.id, str(e)) from e
            if not result.success:
                raise RuleApplicationError(rule.id, result.error or "agent task failed")
        except RuleApplicationError as e:
            logger.warning(f"{e}; department and position assignment kept")
            if self.activity is not None:
                self.activity.record(
                    action="rule_application_error",
                    description=str(e),
                    entity_type="citizen_request",
                    entity_id=request.id,
                    level=ActivityLevel.WARNING,
                    details={"rule_id": rule.id, "agent_id": rule.agent_id},
                )
            return request

        data = result.result or {}
        agent = self.config_store.snapshot.get_agent(rule.agent_id)
        suggestions.append(f"Обработано ИИ-агентом {agent.name if agent else rule.agent_id}")
        return request.model_copy(update={
            "ai_classification": data.get("classification") or request.ai_classification,
            "priority": data.get("priority") or request.priority,
            "summary": data.get("summary") or request.summary,
        })
