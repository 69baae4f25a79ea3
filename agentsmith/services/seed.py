"""
Default organization: departments, positions, agents, distribution
rules and the knowledge corpus. Seeding is skipped when agents exist.
"""

import logging

from agentsmith.models.database import get_db_context
from agentsmith.models.entities.agents import Agent, AgentType, AgentSubtype
from agentsmith.models.entities.knowledge import KnowledgeEntry
from agentsmith.models.entities.org_structure import Department, Position, OrganizationalRule, SourceType
from agentsmith.services.knowledge_retriever import SAMPLE_CORPUS

logger = logging.getLogger(__name__)

# (code, name, level)
DEPARTMENTS = [
    ("management", "Руководство", 0),
    ("chancellery", "Канцелярия", 1),
    ("citizens", "Отдел по работе с гражданами", 1),
    ("legal", "Юридический отдел", 1),
    ("communal", "Отдел жилищно-коммунального хозяйства", 1),
    ("development", "Отдел цифрового развития", 1),
    ("support", "Служба технической поддержки", 1),
    ("ai", "Отдел искусственного интеллекта и аналитики", 1),
]

AGENTS = [
    {
        "name": "Классификатор обращений",
        "agent_type": AgentType.CITIZEN_REQUESTS,
        "subtype": AgentSubtype.CLASSIFICATION,
        "description": "Определяет категорию, приоритет и краткое содержание обращения",
        "use_rag": True,
    },
    {
        "name": "Подготовка ответов",
        "agent_type": AgentType.CITIZEN_REQUESTS,
        "subtype": AgentSubtype.RESPONSE,
        "description": "Готовит проект официального ответа гражданину",
        "use_rag": True,
    },
    {
        "name": "Анализ документов",
        "agent_type": AgentType.DOCUMENT_PROCESSING,
        "subtype": AgentSubtype.GENERIC,
    },
    {
        "name": "Протоколы совещаний",
        "agent_type": AgentType.MEETING_PROTOCOLS,
        "subtype": AgentSubtype.GENERIC,
    },
    {
        "name": "Проверка записей реестра",
        "agent_type": AgentType.BLOCKCHAIN,
        "subtype": AgentSubtype.GENERIC,
    },
]

# (name, source type, keywords, department code)
RULES = [
    ("Распределение задач по разработке", SourceType.MEETING,
     ["разработка", "ПО", "программирование", "код", "приложение"], "development"),
    ("Распределение задач поддержки", SourceType.CITIZEN_REQUEST,
     ["поддержка", "ошибка", "проблема", "сбой", "помощь"], "support"),
    ("Распределение задач по ИИ", SourceType.DOCUMENT,
     ["ИИ", "искусственный интеллект", "машинное обучение", "НЛП", "анализ данных"], "ai"),
    ("Распределение запросов по документам", SourceType.CITIZEN_REQUEST,
     ["документ", "справка", "удостоверение", "паспорт", "сертификат", "лицензия", "получение документов"],
     "chancellery"),
    ("Распределение коммунальных запросов", SourceType.CITIZEN_REQUEST,
     ["коммунальные", "свет", "вода", "отопление", "электричество", "ремонт", "освещение", "дорога"],
     "communal"),
]


def seed_defaults(session_factory=None) -> bool:
    """Insert the default organization. Returns False if data already exists."""
    with get_db_context(session_factory) as db:
        if db.query(Agent).first() is not None:
            logger.info("Agents already configured, skipping seed")
            return False

        departments = {}
        heads = {}
        for code, name, level in DEPARTMENTS:
            department = Department(code=code, name=name, level=level)
            db.add(department)
            db.flush()
            departments[code] = department

            head = Position(
                name="Аким" if code == "management" else f"Руководитель: {name}",
                department_id=department.id,
                level=level,
                can_approve=True,
                can_assign=True,
            )
            db.add(head)
            db.add(Position(
                name=f"Специалист: {name}",
                department_id=department.id,
                level=level + 1,
            ))
            db.flush()
            heads[code] = head

        for fields in AGENTS:
            db.add(Agent(**fields))

        for order, (name, source_type, keywords, code) in enumerate(RULES):
            db.add(OrganizationalRule(
                name=name,
                source_type=source_type,
                keywords=keywords,
                department_id=departments[code].id,
                position_id=heads[code].id,
                sort_order=order,
            ))

        for item in SAMPLE_CORPUS:
            db.add(KnowledgeEntry(text=item.text, tags=list(item.tags), source=item.source))

    logger.info(f"Seeded {len(DEPARTMENTS)} departments, {len(AGENTS)} agents, {len(RULES)} rules")
    return True
