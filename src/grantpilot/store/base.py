"""
GrantPilot Store Interface

Persistence contract the workflows are written against. A store holds
ApplicationRecord rows and offers three ways to mutate one:

- transaction(): read-modify-write on a working copy, committed only if
  the block exits cleanly
- conditional_update(): the equivalent of ``UPDATE ... WHERE``; applies a
  mutation only if a predicate holds on the current row
- update_where(): conditional_update over every row (used by sweeps)

Every mutation touches exactly one row, so no cross-application
transaction is ever required.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, ContextManager, Optional

from ..models import Application, ApplicationRecord

RowPredicate = Callable[[ApplicationRecord], bool]
RowMutation = Callable[[ApplicationRecord], None]


class ApplicationStore(ABC):
    """Abstract persistence for application rows."""

    @abstractmethod
    def add_application(self, application: Application) -> ApplicationRecord:
        """Insert a new row; fails if the id is already present."""

    @abstractmethod
    def get(self, application_id: int) -> ApplicationRecord:
        """
        Snapshot of one row.

        Raises:
            NotFoundError: If no row has this id
        """

    @abstractmethod
    def records(self) -> list[ApplicationRecord]:
        """Snapshots of all rows, ordered by application id."""

    @abstractmethod
    def transaction(self, application_id: int) -> ContextManager[ApplicationRecord]:
        """
        Yield a working copy of one row and commit it on clean exit.

        An exception raised inside the block discards the working copy.
        """

    @abstractmethod
    def conditional_update(
        self,
        application_id: int,
        where: RowPredicate,
        apply: RowMutation,
    ) -> Optional[ApplicationRecord]:
        """
        Atomically apply ``apply`` if ``where`` holds on the current row.

        Returns:
            Snapshot of the updated row, or None if ``where`` was false
        """

    def update_where(self, where: RowPredicate, apply: RowMutation) -> list[ApplicationRecord]:
        """Conditionally update every row; returns the rows that changed."""
        updated = []
        for record in self.records():
            result = self.conditional_update(record.application_id, where, apply)
            if result is not None:
                updated.append(result)
        return updated
