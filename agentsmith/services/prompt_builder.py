"""
Prompt construction for agent tasks.

Pure string building: an agent's custom template wins; otherwise one of
the built-in templates for the task type is rendered. Metadata fields
that are missing are left out of the prompt entirely.
"""

from string import Template
from typing import Optional, Dict, Any, List, Callable

from agentsmith.models.schemas.org import AgentDefinition
from agentsmith.models.schemas.tasks import TaskType, CLASSIFICATION_CATEGORIES, PRIORITIES

CATEGORY_LABELS = {
    "complaint": "жалоба",
    "proposal": "предложение",
    "application": "заявление",
    "appeal": "обжалование",
    "gratitude": "благодарность",
    "information_request": "запрос информации",
    "general": "иное",
}


def _present(metadata: Dict[str, Any], key: str) -> bool:
    value = metadata.get(key)
    return value is not None and value != ""


def _line(metadata: Dict[str, Any], key: str, label: str) -> List[str]:
    """Rendered metadata line, or nothing when the field is absent."""
    if not _present(metadata, key):
        return []
    value = metadata[key]
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(v) for v in value)
    return [f"{label}: {value}"]


def _join(parts: List[str]) -> str:
    return "\n".join(parts).strip()


def render_custom(template: str, content: str, metadata: Dict[str, Any]) -> str:
    """${key} substitution; unknown placeholders stay verbatim."""
    values = {key: str(value) for key, value in metadata.items() if value is not None}
    values["content"] = content
    return Template(template).safe_substitute(values)


def _classification(content: str, metadata: Dict[str, Any]) -> str:
    categories = "\n".join(f"- {code} ({CATEGORY_LABELS[code]})" for code in CLASSIFICATION_CATEGORIES)
    return _join([
        "Классифицируйте обращение гражданина.",
        *_line(metadata, "subject", "Тема"),
        *_line(metadata, "request_type", "Тип по данным заявителя"),
        *_line(metadata, "source", "Источник"),
        "",
        "Текст обращения:",
        content,
        "",
        "Возможные категории:",
        categories,
        "",
        f"Приоритет: одно из {', '.join(PRIORITIES)}.",
        "Верните только JSON без пояснений в формате:",
        '{"classification": "<категория>", "confidence": <0..1>, "priority": "<приоритет>", '
        '"summary": "<краткое содержание>", "keywords": ["..."], "needs_human_review": <true|false>}',
    ])


def _summarization(content: str, metadata: Dict[str, Any]) -> str:
    return _join([
        "Составьте краткое содержание следующего текста.",
        *_line(metadata, "max_length", "Максимальная длина (символов)"),
        *_line(metadata, "language", "Язык ответа"),
        "",
        content,
    ])


def _response(content: str, metadata: Dict[str, Any]) -> str:
    return _join([
        "Пожалуйста, сформируйте ответ на следующее обращение гражданина:",
        "",
        f'Обращение: "{content}"',
        *_line(metadata, "full_name", "Заявитель"),
        *_line(metadata, "classification", "Классификация обращения"),
        *_line(metadata, "summary", "Краткое содержание"),
        "",
        "Ваш ответ должен быть:",
        "1. Непосредственно связан с темой обращения",
        "2. Содержать конкретные рекомендации по решению проблемы",
        "3. Содержать информацию о том, куда может обратиться гражданин за дополнительной помощью",
        "",
        "Сформулируйте ответ в формате официального ответа на обращение гражданина.",
    ])


def _analytics(content: str, metadata: Dict[str, Any]) -> str:
    return _join([
        "Проанализируйте данные и верните JSON с ключами "
        '"findings" (список выводов), "trends" (список тенденций) и "recommendations" (список рекомендаций).',
        *_line(metadata, "period", "Период"),
        *_line(metadata, "focus", "Фокус анализа"),
        "",
        content,
    ])


def _protocol(content: str, metadata: Dict[str, Any]) -> str:
    return _join([
        "Сформируйте протокол совещания по стенограмме.",
        *_line(metadata, "meeting_title", "Совещание"),
        *_line(metadata, "meeting_date", "Дата"),
        *_line(metadata, "participants", "Участники"),
        "",
        content,
        "",
        'Верните JSON с ключами "summary", "decisions" (список), '
        '"tasks" (список объектов с "description", "responsible", "deadline").',
    ])


def _translation(content: str, metadata: Dict[str, Any]) -> str:
    target = metadata.get("target_language") or "русский"
    return _join([
        f"Переведите текст на язык: {target}.",
        *_line(metadata, "source_language", "Исходный язык"),
        "Сохраните официальный стиль. Верните только перевод.",
        "",
        content,
    ])


def _citizen_request(content: str, metadata: Dict[str, Any]) -> str:
    return _join([
        "Обработайте обращение гражданина: определите категорию, приоритет и предложите решение.",
        *_line(metadata, "subject", "Тема"),
        *_line(metadata, "full_name", "Заявитель"),
        *_line(metadata, "request_type", "Тип"),
        "",
        content,
        "",
        f"Категории: {', '.join(CLASSIFICATION_CATEGORIES)}. Приоритеты: {', '.join(PRIORITIES)}.",
        'Верните JSON с ключами "classification", "priority", "summary", "suggestion", "needs_human_review".',
    ])


def _document(content: str, metadata: Dict[str, Any]) -> str:
    parts = [
        "Пожалуйста, проанализируйте следующий документ:",
        *_line(metadata, "title", "Название"),
        *_line(metadata, "document_type", "Тип документа"),
        "",
        content,
        "",
        "Выделите:",
        "1. Ключевые факты и выводы",
        "2. Участники и их роли",
        "3. Сроки и важные даты",
        "4. Обязательства и ответственные",
        "5. Рекомендации",
    ]
    if metadata.get("format") == "json":
        parts.append('Верните JSON с ключами "facts", "participants", "deadlines", "obligations", "recommendations".')
    return _join(parts)


BUILTIN_TEMPLATES: Dict[TaskType, Callable[[str, Dict[str, Any]], str]] = {
    TaskType.CLASSIFICATION: _classification,
    TaskType.SUMMARIZATION: _summarization,
    TaskType.RESPONSE: _response,
    TaskType.ANALYTICS: _analytics,
    TaskType.PROTOCOL: _protocol,
    TaskType.TRANSLATION: _translation,
    TaskType.CITIZEN_REQUEST: _citizen_request,
    TaskType.DOCUMENT: _document,
}


class PromptBuilder:

    def build(
        self,
        agent: Optional[AgentDefinition],
        task_type: TaskType,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        metadata = metadata or {}
        if agent is not None and agent.prompt_template:
            return render_custom(agent.prompt_template, content, metadata)

        template = BUILTIN_TEMPLATES.get(TaskType(task_type))
        if template is None:
            # RAG questions go to the model as asked
            return content
        return template(content, metadata)


prompt_builder = PromptBuilder()
