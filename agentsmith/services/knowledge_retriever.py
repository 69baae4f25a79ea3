"""
Knowledge retrieval for prompt enrichment (RAG).

Keyword scoring over a small corpus: query tokens are matched against
each entry's tags and text, and the two overlaps are combined into a
bounded score. Deterministic; ties keep corpus order.
"""

import logging
import re
from typing import List, Optional, Sequence, Callable

from agentsmith.core.config import settings
from agentsmith.models.entities.audit import ActivityLevel
from agentsmith.models.schemas.org import KnowledgeItem, RetrievedPassage

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "Внутренняя база знаний"

TAG_WEIGHT = 0.6
TEXT_WEIGHT = 0.4
TAG_SATURATION = 3
TEXT_SATURATION = 5
MIN_STEM_LENGTH = 4

SAMPLE_CORPUS: List[KnowledgeItem] = [
    KnowledgeItem(
        text="Обращения граждан категории 'complaint' обрабатываются Отделом по работе с гражданами в течение 10 рабочих дней.",
        tags=["complaint", "обращение", "жалоба", "срок", "обработка"],
    ),
    KnowledgeItem(
        text="Предложения граждан (категория 'proposal') рассматриваются Канцелярией и перенаправляются в профильные департаменты для анализа.",
        tags=["proposal", "предложение", "канцелярия", "анализ"],
    ),
    KnowledgeItem(
        text="В соответствии с Законом РК 'О порядке рассмотрения обращений физических и юридических лиц', официальные запросы информации должны быть обработаны в течение 15 календарных дней с момента регистрации.",
        tags=["информация", "запрос", "срок", "закон", "обработка", "information_request"],
    ),
    KnowledgeItem(
        text="Юридический отдел отвечает за правовую экспертизу обращений категории 'appeal', включая обжалование административных штрафов, и готовит официальные ответы с цитированием действующего законодательства.",
        tags=["appeal", "юридический", "законодательство", "экспертиза", "штраф", "обжалование"],
    ),
    KnowledgeItem(
        text="Высокоприоритетные обращения (priority: high, urgent) маршрутизируются напрямую руководителям соответствующих отделов для немедленного реагирования.",
        tags=["priority", "high", "urgent", "руководитель", "реагирование"],
    ),
]

_TOKEN_RE = re.compile(r"\w+")


def tokenize(text: str) -> List[str]:
    return _TOKEN_RE.findall((text or "").lower())


def _token_matches(query_token: str, word: str) -> bool:
    """Exact match, or a shared stem when the shorter side is long enough."""
    if query_token == word:
        return True
    shorter = min(len(query_token), len(word))
    if shorter < MIN_STEM_LENGTH:
        return False
    return word.startswith(query_token) or query_token.startswith(word)


def _hits(query_tokens: Sequence[str], words: Sequence[str]) -> int:
    return sum(1 for token in query_tokens if any(_token_matches(token, word) for word in words))


def score_entry(query_tokens: Sequence[str], item: KnowledgeItem) -> float:
    if not query_tokens:
        return 0.0
    tag_words = [word for tag in item.tags for word in tokenize(tag)]
    text_words = tokenize(item.text)

    tag_score = min(1.0, _hits(query_tokens, tag_words) / min(len(query_tokens), TAG_SATURATION))
    text_score = min(1.0, _hits(query_tokens, text_words) / min(len(query_tokens), TEXT_SATURATION))
    return round(min(1.0, TAG_WEIGHT * tag_score + TEXT_WEIGHT * text_score), 4)


class KnowledgeRetriever:
    """
    Searches the knowledge corpus. The corpus comes from the config store
    when one is given, falling back to the built-in sample corpus.
    """

    def __init__(
        self,
        corpus: Optional[Sequence[KnowledgeItem]] = None,
        corpus_provider: Optional[Callable[[], Sequence[KnowledgeItem]]] = None,
        activity_logger=None,
    ):
        self._corpus = list(corpus) if corpus is not None else None
        self._corpus_provider = corpus_provider
        self.activity = activity_logger

    def corpus(self) -> List[KnowledgeItem]:
        if self._corpus is not None:
            return self._corpus
        if self._corpus_provider is not None:
            provided = list(self._corpus_provider())
            if provided:
                return provided
        return SAMPLE_CORPUS

    async def search(
        self,
        query: str,
        limit: int = 5,
        min_score: Optional[float] = None,
    ) -> List[RetrievedPassage]:
        """Top passages by score. Never raises; [] means no enrichment."""
        threshold = settings.RAG_MIN_SCORE if min_score is None else min_score
        if limit <= 0:
            return []
        try:
            query_tokens = tokenize(query)
            scored = []
            for item in self.corpus():
                score = score_entry(query_tokens, item)
                if score > 0 and score >= threshold:
                    scored.append(RetrievedPassage(
                        text=item.text,
                        score=score,
                        source=item.source or DEFAULT_SOURCE,
                        metadata={**item.metadata, "tags": list(item.tags)},
                    ))
            # sorted() is stable, so equal scores keep corpus order
            return sorted(scored, key=lambda passage: passage.score, reverse=True)[:limit]
        except Exception as e:
            logger.error(f"Knowledge search failed: {e}")
            if self.activity is not None:
                self.activity.record(
                    action="system_event",
                    description=f"Ошибка при поиске в базе знаний: {e}",
                    level=ActivityLevel.ERROR,
                )
            return []

    async def enrich_prompt(self, prompt: str, query: str, limit: int = 3) -> str:
        """Append a knowledge-base context block, or return the prompt unchanged."""
        passages = await self.search(query, limit)
        if not passages:
            return prompt
        return f"{prompt}\n\n{format_context(passages)}"


def format_context(passages: Sequence[RetrievedPassage]) -> str:
    lines = "\n\n".join(
        f"[{i}] {passage.text} (Релевантность: {passage.score * 100:.1f}%)"
        for i, passage in enumerate(passages, start=1)
    )
    return (
        "Контекст из базы знаний:\n"
        f"{lines}\n\n"
        "Используй предоставленную информацию из базы знаний при формировании ответа, "
        "если она релевантна запросу."
    )
