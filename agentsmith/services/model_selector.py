"""
Model selection by task type, priority and content size.

Pure and deterministic: the same (task_type, content, priority) always
yields the same selection.
"""

import math
from typing import Optional, Union

from agentsmith.core.config import settings
from agentsmith.models.schemas.tasks import ModelSelection, TaskType
from agentsmith.services.model_provider import resolve_provider

# (model, max_tokens, temperature)
URGENT_PROFILES = {
    TaskType.CLASSIFICATION: ("gpt-4o", 1000, 0.2),
    TaskType.SUMMARIZATION: ("gpt-4o", 1000, 0.2),
    TaskType.RESPONSE: ("claude-3-7-sonnet-20250219", 2000, 0.7),
    TaskType.PROTOCOL: ("claude-3-7-sonnet-20250219", 2000, 0.7),
}
URGENT_DEFAULT = ("gpt-4o", 1500, 0.5)

LARGE_CONTEXT_PROFILE = ("claude-3-7-opus-20250219", 4000, 0.3)

STANDARD_PROFILES = {
    TaskType.CLASSIFICATION: ("gpt-3.5-turbo", 800, 0.2),
    TaskType.SUMMARIZATION: ("gpt-4o-mini", 1500, 0.3),
    TaskType.RESPONSE: ("claude-3-5-sonnet-20240620", 2000, 0.7),
}
STANDARD_DEFAULT = ("gpt-4o-mini", 1000, 0.5)

URGENT_PRIORITIES = ("high", "urgent")


def estimate_tokens(content: str) -> int:
    """Rough token estimate: one token per four characters."""
    return math.ceil(len(content or "") / 4)


class ModelSelector:
    """Chooses model parameters for a task."""

    def __init__(self, large_context_tokens: Optional[int] = None):
        self.large_context_tokens = large_context_tokens or settings.LARGE_CONTEXT_TOKENS

    def select(
        self,
        task_type: Union[TaskType, str],
        content: str,
        priority: Optional[str] = None,
    ) -> ModelSelection:
        task_type = TaskType(task_type)

        if priority in URGENT_PRIORITIES:
            profile = URGENT_PROFILES.get(task_type, URGENT_DEFAULT)
        elif estimate_tokens(content) > self.large_context_tokens:
            profile = LARGE_CONTEXT_PROFILE
        else:
            profile = STANDARD_PROFILES.get(task_type, STANDARD_DEFAULT)

        model, max_tokens, temperature = profile
        return ModelSelection(
            model=model,
            provider=resolve_provider(model).value,
            max_tokens=max_tokens,
            temperature=temperature,
        )


model_selector = ModelSelector()
