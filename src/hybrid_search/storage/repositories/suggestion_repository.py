"""Repository for autocomplete suggestion terms."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import SuggestionTerm
from .base import BaseRepository, RepositoryError


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SuggestionRepository(BaseRepository[SuggestionTerm]):
    """Data access for suggestion terms."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, SuggestionTerm)

    async def upsert_term(
        self, term: str, entity_type: Optional[str], used_at: datetime
    ) -> None:
        """Insert a term with frequency 1 or bump an existing one atomically."""
        try:
            stmt = sqlite_insert(SuggestionTerm).values(
                term=term,
                frequency=1,
                entity_type=entity_type,
                last_used_at=used_at,
                created_at=used_at,
                updated_at=used_at,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[SuggestionTerm.term],
                set_={
                    "frequency": SuggestionTerm.frequency + 1,
                    "last_used_at": used_at,
                    "updated_at": used_at,
                },
            )
            await self.session.execute(stmt)

        except Exception as e:
            await self.session.rollback()
            self.logger.error("Failed to upsert suggestion term", term=term, error=str(e))
            raise RepositoryError(f"Failed to upsert term '{term}': {str(e)}") from e

    async def get_by_term(self, term: str) -> Optional[SuggestionTerm]:
        stmt = select(SuggestionTerm).where(SuggestionTerm.term == term)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_prefix(
        self, prefix: str, entity_type: Optional[str] = None, limit: int = 5
    ) -> List[SuggestionTerm]:
        """Terms starting with ``prefix``, most frequent then most recent first."""
        conditions = [
            SuggestionTerm.term.like(f"{escape_like(prefix.lower())}%", escape="\\")
        ]
        if entity_type:
            conditions.append(SuggestionTerm.entity_type == entity_type)

        return await self._find(and_(*conditions), limit)

    async def find_containing(self, text: str, limit: int = 5) -> List[SuggestionTerm]:
        """Terms containing ``text`` anywhere, case-insensitively."""
        condition = SuggestionTerm.term.like(
            f"%{escape_like(text.lower())}%", escape="\\"
        )
        return await self._find(condition, limit)

    async def find_popular(
        self, entity_type: Optional[str] = None, limit: int = 10
    ) -> List[SuggestionTerm]:
        condition = SuggestionTerm.entity_type == entity_type if entity_type else None
        return await self._find(condition, limit)

    async def delete_stale(self, cutoff: datetime, min_frequency: int) -> int:
        """Delete terms unused since ``cutoff`` AND below ``min_frequency``."""
        try:
            stmt = delete(SuggestionTerm).where(
                and_(
                    SuggestionTerm.last_used_at < cutoff,
                    SuggestionTerm.frequency < min_frequency,
                )
            )
            result = await self.session.execute(stmt)
            return result.rowcount or 0

        except Exception as e:
            await self.session.rollback()
            self.logger.error("Failed to delete stale suggestions", error=str(e))
            raise RepositoryError(
                f"Failed to delete stale suggestions: {str(e)}"
            ) from e

    async def _find(self, condition, limit: int) -> List[SuggestionTerm]:
        try:
            stmt = select(SuggestionTerm)
            if condition is not None:
                stmt = stmt.where(condition)
            stmt = stmt.order_by(
                SuggestionTerm.frequency.desc(),
                SuggestionTerm.last_used_at.desc(),
                SuggestionTerm.term.asc(),
            ).limit(limit)

            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        except Exception as e:
            self.logger.error("Failed to query suggestion terms", error=str(e))
            raise RepositoryError(f"Failed to query suggestion terms: {str(e)}") from e
