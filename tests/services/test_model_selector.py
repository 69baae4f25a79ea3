import pytest

from agentsmith.models.schemas.tasks import TaskType
from agentsmith.services.model_selector import ModelSelector, estimate_tokens


@pytest.fixture
def selector():
    return ModelSelector(large_context_tokens=64000)


class TestModelSelector:

    def test_selection_is_deterministic(self, selector):
        first = selector.select(TaskType.RESPONSE, "Текст обращения", "medium")
        second = selector.select(TaskType.RESPONSE, "Текст обращения", "medium")
        assert first == second

    def test_urgent_classification_uses_strong_model(self, selector):
        selection = selector.select("classification", "x" * 50, "urgent")
        assert selection.model == "gpt-4o"
        assert selection.temperature == 0.2
        assert selection.max_tokens == 1000
        assert selection.provider == "openai"

    def test_default_classification_is_economical(self, selector):
        selection = selector.select("classification", "x" * 50, "medium")
        assert selection.model == "gpt-3.5-turbo"
        assert selection.temperature == 0.2
        assert selection.max_tokens == 800

    @pytest.mark.parametrize("task_type", [TaskType.RESPONSE, TaskType.PROTOCOL])
    def test_high_priority_generation_goes_to_claude(self, selector, task_type):
        selection = selector.select(task_type, "короткий текст", "high")
        assert selection.model == "claude-3-7-sonnet-20250219"
        assert selection.provider == "anthropic"
        assert selection.temperature == 0.7

    def test_high_priority_other_task(self, selector):
        selection = selector.select(TaskType.TRANSLATION, "текст", "high")
        assert (selection.model, selection.max_tokens, selection.temperature) == ("gpt-4o", 1500, 0.5)

    def test_large_context_overrides_task_type(self, selector):
        content = "a" * (64000 * 4 + 1)
        for task_type in (TaskType.CLASSIFICATION, TaskType.RESPONSE, TaskType.ANALYTICS):
            selection = selector.select(task_type, content, "low")
            assert selection.model == "claude-3-7-opus-20250219"
            assert selection.temperature == 0.3

    def test_exactly_at_threshold_is_not_large(self, selector):
        selection = selector.select(TaskType.SUMMARIZATION, "a" * (64000 * 4), None)
        assert selection.model == "gpt-4o-mini"
        assert selection.max_tokens == 1500

    def test_priority_wins_over_size(self, selector):
        selection = selector.select(TaskType.SUMMARIZATION, "a" * 300000, "urgent")
        assert selection.model == "gpt-4o"

    def test_defaults(self, selector):
        assert selector.select(TaskType.RESPONSE, "t").model == "claude-3-5-sonnet-20240620"
        fallback = selector.select(TaskType.ANALYTICS, "t")
        assert (fallback.model, fallback.max_tokens, fallback.temperature) == ("gpt-4o-mini", 1000, 0.5)

    def test_estimate_tokens_rounds_up(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcde") == 2
