"""Storage of live workflow instances."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Protocol

from ..constants import DEFAULT_MAX_RETAINED_WORKFLOWS
from .models import WorkflowStatus

logger = logging.getLogger(__name__)


class WorkflowStore(Protocol):
    """Protocol for workflow instance storage backends."""

    def add(self, workflow: WorkflowStatus) -> None:
        """Store a newly created workflow."""

    def get(self, workflow_id: str) -> Optional[WorkflowStatus]:
        """Return the live workflow instance or ``None``."""

    def list(self) -> List[WorkflowStatus]:
        """Return all retained workflows, oldest first."""

    def __contains__(self, workflow_id: object) -> bool:
        """Whether ``workflow_id`` is retained."""


class InMemoryWorkflowStore:
    """Keep workflow instances in local memory.

    Data is not persisted across process restarts. Once more than
    ``max_retained`` instances are held, the oldest finished ones are evicted;
    running or pending instances are never dropped.
    """

    def __init__(self, max_retained: int = DEFAULT_MAX_RETAINED_WORKFLOWS) -> None:
        self._workflows: Dict[str, WorkflowStatus] = {}
        self._max_retained = max_retained
        self._lock = threading.RLock()

    def add(self, workflow: WorkflowStatus) -> None:
        with self._lock:
            self._workflows[workflow.id] = workflow
            self._evict()

    def get(self, workflow_id: str) -> Optional[WorkflowStatus]:
        with self._lock:
            return self._workflows.get(workflow_id)

    def list(self) -> List[WorkflowStatus]:
        with self._lock:
            return list(self._workflows.values())

    def __contains__(self, workflow_id: object) -> bool:
        with self._lock:
            return workflow_id in self._workflows

    def __len__(self) -> int:
        with self._lock:
            return len(self._workflows)

    def _evict(self) -> None:
        overflow = len(self._workflows) - self._max_retained
        if overflow <= 0:
            return
        finished = [wf.id for wf in self._workflows.values() if wf.is_finished()]
        for workflow_id in finished[:overflow]:
            del self._workflows[workflow_id]
            logger.debug(f"Evicted finished workflow {workflow_id}")
