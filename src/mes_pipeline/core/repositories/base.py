"""
Abstract repository interface.

This module defines the generic repository pattern interface (IRepository)
shared by the three SQLite tables of the pipeline.

The repository pattern:
- Encapsulates data access logic
- Provides abstraction over data storage (SQLite file, in-memory SQLite)
- Enables easy testing (in-memory databases or mocks)
- Keeps normalization and aggregation separate from data access

Records are created during import and otherwise only read or cleared in
bulk, so the interface has no update or per-entity delete.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar, Optional, List

# Entity type (TestRecord, LogFile, LogMapping)
T = TypeVar("T")

# Key type (int for test records, str for log files and mappings)
K = TypeVar("K")


class IRepository(ABC, Generic[T, K]):
    """
    Abstract repository interface for data access.

    Example usage:
        record_repo: IRepository[TestRecord, int] = TestRecordRepository(conn)
        records = record_repo.get_all()
    """

    @abstractmethod
    def get_by_id(self, id: K) -> Optional[T]:
        """
        Get an entity by its key.

        Args:
            id: Key of the entity to retrieve

        Returns:
            The entity if found, None otherwise
        """
        pass

    @abstractmethod
    def get_all(self) -> List[T]:
        """
        Get all entities.

        Returns:
            List of all entities, in insertion order
        """
        pass

    @abstractmethod
    def create(self, entity: T) -> T:
        """
        Store a new entity.

        Args:
            entity: The entity to store

        Returns:
            The stored entity (with its generated key, where applicable)

        Raises:
            DatabaseError: If the write fails
        """
        pass

    @abstractmethod
    def clear(self, commit: bool = True) -> None:
        """
        Delete every entity of this table.

        Args:
            commit: Commit immediately; pass False to clear several tables
                    inside one caller-managed transaction

        Raises:
            DatabaseError: If the delete fails
        """
        pass
