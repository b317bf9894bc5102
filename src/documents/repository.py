"""Persistence for document records.

Every read is scoped by owner: asking for another user's document looks the
same as asking for one that does not exist.
"""

import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.models.document import Document
from src.core.models.enums import ProcessingStatus

# Statuses the stale sweeper looks at.
IN_FLIGHT_STATUSES = (ProcessingStatus.pending, ProcessingStatus.processing)


class DocumentRepository(Protocol):
    async def add(self, document: Document) -> Document: ...

    async def get(self, document_id: uuid.UUID, user_id: uuid.UUID | None = None) -> Document | None: ...

    async def save(self, document: Document) -> Document: ...

    async def delete(self, document_id: uuid.UUID) -> None: ...

    async def list_for_user(self, user_id: uuid.UUID) -> list[Document]: ...

    async def list_stale(self, updated_before: datetime) -> list[Document]: ...


class SqlDocumentRepository:
    """Documents table through SQLAlchemy async sessions."""

    def __init__(self, session_factory: Callable[[], AsyncSession] | None = None):
        if session_factory is None:
            from src.core.db import async_session

            session_factory = async_session
        self._session_factory = session_factory

    async def add(self, document: Document) -> Document:
        async with self._session_factory() as session:
            session.add(document)
            await session.commit()
        return document

    async def get(self, document_id: uuid.UUID, user_id: uuid.UUID | None = None) -> Document | None:
        stmt = select(Document).where(Document.id == document_id)
        if user_id is not None:
            stmt = stmt.where(Document.user_id == user_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def save(self, document: Document) -> Document:
        async with self._session_factory() as session:
            merged = await session.merge(document)
            await session.commit()
        return merged

    async def delete(self, document_id: uuid.UUID) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(Document).where(Document.id == document_id))
            await session.commit()

    async def list_for_user(self, user_id: uuid.UUID) -> list[Document]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Document)
                .where(Document.user_id == user_id)
                .order_by(Document.created_at.desc())
            )
            return list(result.scalars().all())

    async def list_stale(self, updated_before: datetime) -> list[Document]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Document).where(
                    Document.processing_status.in_(IN_FLIGHT_STATUSES),
                    Document.updated_at < updated_before,
                )
            )
            return list(result.scalars().all())


class InMemoryDocumentRepository:
    """Dict-backed repository for tests and local runs."""

    def __init__(self):
        self.documents: dict[uuid.UUID, Document] = {}

    async def add(self, document: Document) -> Document:
        self.documents[document.id] = document
        return document

    async def get(self, document_id: uuid.UUID, user_id: uuid.UUID | None = None) -> Document | None:
        document = self.documents.get(document_id)
        if document is None or (user_id is not None and document.user_id != user_id):
            return None
        return document

    async def save(self, document: Document) -> Document:
        self.documents[document.id] = document
        return document

    async def delete(self, document_id: uuid.UUID) -> None:
        self.documents.pop(document_id, None)

    async def list_for_user(self, user_id: uuid.UUID) -> list[Document]:
        owned = [d for d in self.documents.values() if d.user_id == user_id]
        return sorted(owned, key=lambda d: d.created_at, reverse=True)

    async def list_stale(self, updated_before: datetime) -> list[Document]:
        return [
            d
            for d in self.documents.values()
            if d.processing_status in IN_FLIGHT_STATUSES and d.updated_at < updated_before
        ]
