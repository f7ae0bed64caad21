import logging
from typing import List, Optional

from rag_engine.modules.store.base import BaseDocumentCatalog
from rag_engine.schemas.document import DocumentType
from rag_engine.schemas.search import Suggestion


logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5


class SuggestionService:
    """Typeahead over question titles. Lookup failures yield no suggestions."""

    def __init__(self, catalog: BaseDocumentCatalog):
        self.catalog = catalog

    async def suggest(self, query: str, scope_id: Optional[str] = None,
                      limit: int = MAX_SUGGESTIONS) -> List[Suggestion]:
        query = (query or "").strip()
        if not query:
            return []
        limit = min(max(limit, 1), MAX_SUGGESTIONS)
        try:
            snapshots = await self.catalog.suggest(query, scope_id, limit,
                                                   types=[DocumentType.QUESTION.value])
        except Exception:
            logger.exception(f"Suggestion lookup failed for '{query}'")
            return []
        return [
            Suggestion(id=s.id, title=s.title, slug=s.slug, scope_slug=s.scope_slug)
            for s in snapshots[:limit]
        ]
