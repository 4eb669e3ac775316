# roster_index.py

import logging
import threading
from typing import Dict, Optional

import matching
from matching import MatcherState
from models import Employee
from roster_store import RosterStore

logger = logging.getLogger(__name__)


class RosterIndex:
    """Current matcher snapshot for one company."""

    def __init__(self, store: RosterStore, company_id: str, threshold: float):
        self._store = store
        self.company_id = company_id
        self.threshold = threshold
        self._lock = threading.RLock()
        # Serialises rebuilds so the newest roster read is always the last swapped in
        self._rebuild_lock = threading.Lock()
        self._state: MatcherState = matching.build({}, threshold)
        self._names: Dict[str, str] = {}

    def rebuild(self) -> MatcherState:
        """
        Load the roster and swap in a fresh matcher. Ticks that already hold
        the previous snapshot keep using it.
        """
        with self._rebuild_lock:
            employees = self._store.list_employees(self.company_id)
            state = matching.build({e.id: e.embeddings for e in employees}, self.threshold)
            names = {e.id: e.name for e in employees}
            with self._lock:
                self._state = state
                self._names = names
        logger.info(
            f"RosterIndex: company {self.company_id} has {len(state.employee_ids)} employees "
            f"({state.size} reference embeddings)"
        )
        return state

    def snapshot(self) -> MatcherState:
        with self._lock:
            return self._state

    def display_name(self, employee_id: str) -> Optional[str]:
        with self._lock:
            return self._names.get(employee_id)

    def on_employee_committed(self, employee: Employee):
        if employee.company_id == self.company_id:
            self.rebuild()
