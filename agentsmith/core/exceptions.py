"""
Error taxonomy for the agent pipeline.

Public entry points (RequestProcessor, AgentTaskRunner) never let these
escape; they are raised by the lower layers and converted into result
objects or a prior-state return value at the boundary.
"""

from typing import Optional


class AgentSmithError(Exception):
    """Base class for all pipeline errors."""


class AgentNotFoundError(AgentSmithError):
    def __init__(self, agent_id: str):
        super().__init__(f"Agent not found: {agent_id}")
        self.agent_id = agent_id


class AgentInactiveError(AgentSmithError):
    def __init__(self, agent_id: str):
        super().__init__(f"Agent is inactive: {agent_id}")
        self.agent_id = agent_id


class RequestNotFoundError(AgentSmithError):
    def __init__(self, request_id: str):
        super().__init__(f"Citizen request not found: {request_id}")
        self.request_id = request_id


class ModelGatewayError(AgentSmithError):
    """A language-model call failed."""

    def __init__(self, message: str, provider: Optional[str] = None, model: Optional[str] = None):
        super().__init__(message)
        self.provider = provider
        self.model = model


class ModelAuthError(ModelGatewayError):
    """Provider rejected the credentials (HTTP 401)."""


class ModelRateLimitError(ModelGatewayError):
    """Provider quota or rate limit exceeded (HTTP 429)."""


class ModelTimeoutError(ModelGatewayError):
    """The caller-supplied deadline elapsed."""


class ModelResponseParseError(AgentSmithError):
    """Structured output could not be parsed. Downgraded to a review flag."""

    def __init__(self, raw_response: str):
        super().__init__("Model response is not valid JSON")
        self.raw_response = raw_response


class LedgerWriteError(AgentSmithError):
    pass


class RuleApplicationError(AgentSmithError):
    """A matched organizational rule could not be fully applied."""

    def __init__(self, rule_id: str, reason: str):
        super().__init__(f"Rule {rule_id} could not be applied: {reason}")
        self.rule_id = rule_id


class QueueFullError(AgentSmithError):
    pass


class TaskFailedError(AgentSmithError):
    """An agent task returned success=False."""
