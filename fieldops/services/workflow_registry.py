"""
In-process registry of attendance workflows, one per guard per working day.

A workflow outlives the request that created it, but the store it talks to
is request-scoped, so every lookup binds the caller's store. Workflows from a
previous working day are dropped; the next lookup rebuilds from stored records.
"""
import logging
from datetime import date
from typing import Dict, Tuple

from fieldops.services.attendance_workflow import AttendanceWorkflow
from fieldops.services.store import AttendanceStore
from fieldops.utils.datetime_utils import get_work_date

_log = logging.getLogger(__name__)


class WorkflowRegistry:
    def __init__(self, **workflow_options):
        self._workflows: Dict[Tuple[int, date], AttendanceWorkflow] = {}
        self.workflow_options = workflow_options

    async def get(self, guard, store: AttendanceStore) -> AttendanceWorkflow:
        today = get_work_date()
        self._evict_before(today)
        key = (guard.id, today)
        workflow = self._workflows.get(key)
        if workflow is None:
            workflow = await AttendanceWorkflow.restore(guard, store, **self.workflow_options)
            self._workflows[key] = workflow
        workflow.store = store
        return workflow

    def _evict_before(self, today: date) -> None:
        stale = [key for key in self._workflows if key[1] < today]
        for key in stale:
            del self._workflows[key]
        if stale:
            _log.info("dropped %s workflow(s) from previous working days", len(stale))

    def clear(self) -> None:
        self._workflows.clear()


registry = WorkflowRegistry()
