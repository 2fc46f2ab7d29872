"""
Case Persistence

The engine hands finished cases to a repository; it never persists on its
own. InMemoryCaseRepository backs the HTTP app and the tests.
"""
from typing import Any, Dict, Optional, Protocol
import asyncio
import copy

from dermaai.core.case import CaseResult
from dermaai.utils import get_logger, CaseConflictError

logger = get_logger(__name__)


class CaseRepository(Protocol):
    """Durable storage for finished cases. Stored cases are never replaced."""

    async def exists(self, case_id: str) -> bool:
        ...

    async def save(self, result: CaseResult) -> None:
        ...

    async def get(self, case_id: str) -> Optional[Dict[str, Any]]:
        ...


class InMemoryCaseRepository:
    """Dict-backed repository storing durable snapshots (no analysis errors)."""

    def __init__(self):
        self._cases: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def exists(self, case_id: str) -> bool:
        async with self._lock:
            return case_id in self._cases

    async def save(self, result: CaseResult) -> None:
        """
        Store a finished case.

        Raises:
            CaseConflictError: if a case with the same id is already stored
        """
        snapshot = result.to_persistence_dict()
        case_id = snapshot["caseId"]
        async with self._lock:
            if case_id in self._cases:
                raise CaseConflictError(case_id)
            self._cases[case_id] = snapshot
        logger.debug(f"Stored case {case_id} ({snapshot['status']})")

    async def get(self, case_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            snapshot = self._cases.get(case_id)
        return copy.deepcopy(snapshot) if snapshot is not None else None
