"""
DiagnosisRepository for the Plant Care service.

This module provides a singleton, in-memory store for diagnosis records
scoped by owning user.
"""

import threading
from typing import Optional

from plantcare.models.diagnosis import DiagnosisRecord


class DiagnosisNotFoundError(Exception):
    """
    Raised when a diagnosis does not exist for the requesting user.

    Records owned by someone else are reported the same way, so callers
    cannot tell whether another user's diagnosis ID exists.
    """

    pass


class DiagnosisRepository:
    """
    Singleton, thread-safe store of diagnosis records.

    Example:
        >>> repo = get_diagnosis_repository()
        >>> _ = repo.save(record)
        >>> repo.get(record.id, record.user_id).image_url
        'https://cdn.example.com/leaf.jpg'
    """

    _instance: Optional["DiagnosisRepository"] = None

    def __new__(cls) -> "DiagnosisRepository":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._initialized = True

        self._lock = threading.Lock()
        self._records: dict[str, DiagnosisRecord] = {}

    def save(self, record: DiagnosisRecord) -> DiagnosisRecord:
        """Insert or replace a record, keyed by its ID."""
        with self._lock:
            self._records[record.id] = record
        return record

    def get(self, diagnosis_id: str, user_id: str) -> DiagnosisRecord:
        """
        Get a user's diagnosis by ID.

        Args:
            diagnosis_id: Diagnosis ID
            user_id: Requesting user

        Returns:
            DiagnosisRecord

        Raises:
            DiagnosisNotFoundError: If absent or owned by another user
        """
        with self._lock:
            record = self._records.get(diagnosis_id)
        if record is None or record.user_id != user_id:
            raise DiagnosisNotFoundError(f"Diagnosis {diagnosis_id} not found")
        return record

    def list_for_user(self, user_id: str, limit: Optional[int] = None) -> list[DiagnosisRecord]:
        """List a user's diagnoses, newest first."""
        with self._lock:
            records = [r for r in self._records.values() if r.user_id == user_id]
        records.sort(key=lambda r: r.created_at, reverse=True)
        if limit is not None:
            records = records[:limit]
        return records

    def delete(self, diagnosis_id: str, user_id: str) -> None:
        """
        Delete a user's diagnosis.

        Raises:
            DiagnosisNotFoundError: If absent or owned by another user
        """
        with self._lock:
            record = self._records.get(diagnosis_id)
            if record is None or record.user_id != user_id:
                raise DiagnosisNotFoundError(f"Diagnosis {diagnosis_id} not found")
            del self._records[diagnosis_id]

    def discard(self, diagnosis_id: str) -> None:
        """Remove a record regardless of owner; missing IDs are ignored."""
        with self._lock:
            self._records.pop(diagnosis_id, None)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


# Module-level singleton instance
_diagnosis_repository: Optional[DiagnosisRepository] = None


def get_diagnosis_repository() -> DiagnosisRepository:
    """
    Get the singleton DiagnosisRepository instance.

    Returns:
        DiagnosisRepository instance
    """
    global _diagnosis_repository
    if _diagnosis_repository is None:
        _diagnosis_repository = DiagnosisRepository()
    return _diagnosis_repository
