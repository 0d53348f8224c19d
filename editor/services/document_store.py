"""
Document Store

Async facade over the syllabus tables. Reads return snapshots; writes run as a
single transaction per call, serialized per syllabus.
"""

import asyncio
import functools
import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from database import DatabaseManager
from shared.models.domain import SyllabusSnapshot
from shared.repositories.syllabus_repository import SyllabusRepository
from editor.exceptions import NotFoundError

logger = logging.getLogger("editor.document_store")

T = TypeVar("T")


class DocumentStore:
    """
    Shared syllabus store used by every chat session.

    Two mutations touching the same syllabus never interleave: each takes the
    syllabus' process lock and a row lock on the syllabus inside its
    transaction, so they apply in the order the store admits them.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager
        # syllabus_id -> [lock, number of callers holding or waiting on it]
        self._locks: dict[int, list] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _syllabus_lock(self, syllabus_id: int) -> Iterator[None]:
        """Hold the syllabus' process lock; the entry is dropped once no caller needs it."""
        with self._locks_guard:
            entry = self._locks.setdefault(syllabus_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[syllabus_id]

    def _read(self, syllabus_id: int) -> SyllabusSnapshot:
        with self.db_manager.session_scope() as session:
            snapshot = SyllabusRepository(session).get_snapshot(syllabus_id)
        if snapshot is None:
            raise NotFoundError("Syllabus", syllabus_id)
        return snapshot

    def _run_transaction(self, syllabus_id: int, work: Callable[[SyllabusRepository], T]) -> T:
        with self._syllabus_lock(syllabus_id):
            with self.db_manager.session_scope() as session:
                repo = SyllabusRepository(session)
                if repo.lock_for_update(syllabus_id) is None:
                    raise NotFoundError("Syllabus", syllabus_id)
                return work(repo)

    async def read_syllabus(self, syllabus_id: int) -> SyllabusSnapshot:
        """
        Read the full document.

        Raises:
            NotFoundError: If the syllabus does not exist
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read, syllabus_id)

    async def transaction(self, syllabus_id: int, work: Callable[[SyllabusRepository], T]) -> T:
        """
        Run `work` inside one transaction on the given syllabus.

        All row changes made by `work` commit together; any exception rolls
        every change back and propagates.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, functools.partial(self._run_transaction, syllabus_id, work)
        )
