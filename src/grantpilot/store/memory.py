"""
InMemoryStore - reference ApplicationStore.

All rows sit behind one re-entrant lock. Mutations run against a deep
copy that replaces the live row only once the mutation returns, so a
rejected operation never leaves a partial write and a reader never sees
an intermediate state. Swap for a database-backed store in production;
the interface stays the same.
"""
from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from ..exceptions import NotFoundError, ValidationError
from ..models import Application, ApplicationRecord
from .base import ApplicationStore, RowMutation, RowPredicate


class InMemoryStore(ApplicationStore):
    """Thread-safe in-process store."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._rows: dict[int, ApplicationRecord] = {}

    def add_application(self, application: Application) -> ApplicationRecord:
        with self._lock:
            if application.id in self._rows:
                raise ValidationError(
                    message=f"Application {application.id} already exists",
                    details={"field": "id"},
                    application_id=application.id,
                )
            row = ApplicationRecord(application=copy.deepcopy(application))
            self._rows[application.id] = row
            return copy.deepcopy(row)

    def get(self, application_id: int) -> ApplicationRecord:
        with self._lock:
            return copy.deepcopy(self._row(application_id))

    def records(self) -> list[ApplicationRecord]:
        with self._lock:
            return [copy.deepcopy(self._rows[key]) for key in sorted(self._rows)]

    @contextmanager
    def transaction(self, application_id: int) -> Iterator[ApplicationRecord]:
        with self._lock:
            working = copy.deepcopy(self._row(application_id))
            yield working
            self._rows[application_id] = working

    def conditional_update(
        self,
        application_id: int,
        where: RowPredicate,
        apply: RowMutation,
    ) -> Optional[ApplicationRecord]:
        with self._lock:
            current = self._row(application_id)
            if not where(current):
                return None
            working = copy.deepcopy(current)
            apply(working)
            self._rows[application_id] = working
            return copy.deepcopy(working)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)

    def _row(self, application_id: int) -> ApplicationRecord:
        row = self._rows.get(application_id)
        if row is None:
            raise NotFoundError(
                message=f"Application {application_id} not found",
                details={"field": "application_id"},
                application_id=application_id,
            )
        return row
