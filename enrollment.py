# enrollment.py

import logging
from typing import Callable, List, Optional

import numpy as np

from errors import NoFaceDetected, ValidationError
from models import Employee, EmployeeDraft
from roster_store import RosterStore

logger = logging.getLogger(__name__)


class EnrollmentSession:
    """
    Collects embeddings for one employee across several captures. Nothing is
    written until commit() / commit_to().

    extractor: anything with extract(frame) -> embedding | None, usually a
    TimedExtractor around FaceEmbeddingProvider.
    """

    def __init__(
        self,
        store: RosterStore,
        extractor,
        on_commit: Optional[List[Callable[[Employee], None]]] = None,
    ):
        self._store = store
        self._extractor = extractor
        self._on_commit = list(on_commit or [])
        self._pending: List[np.ndarray] = []

    @property
    def count(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> List[np.ndarray]:
        return list(self._pending)

    def capture(self, frame: np.ndarray) -> np.ndarray:
        embedding = self._extractor.extract(frame)
        if embedding is None:
            raise NoFaceDetected("no face detected, try again")
        return self.add_embedding(embedding)

    def add_embedding(self, embedding: np.ndarray) -> np.ndarray:
        embedding = np.array(embedding, dtype="float32")
        if embedding.ndim != 1:
            raise ValueError("embedding must be 1D")
        if self._pending and self._pending[0].shape != embedding.shape:
            raise ValueError("embedding dimensionality differs from earlier captures")
        embedding.setflags(write=False)
        self._pending.append(embedding)
        logger.debug(f"EnrollmentSession: captured sample {len(self._pending)}")
        return embedding

    def discard(self):
        self._pending = []

    def commit(self, draft: EmployeeDraft) -> Employee:
        if not draft.company_id:
            raise ValidationError("select a company first")
        if not draft.name or not draft.name.strip():
            raise ValidationError("name is required")
        if not self._pending:
            raise ValidationError("capture at least one face sample")
        if self._store.get_company(draft.company_id) is None:
            raise ValidationError(f"unknown company {draft.company_id!r}")

        employee = self._store.insert_employee(draft, self._pending)
        logger.info(
            f"EnrollmentSession: enrolled {employee.id} ({employee.name}) "
            f"with {employee.num_embeddings} samples"
        )
        self._finish(employee)
        return employee

    def commit_to(self, employee_id: str) -> Employee:
        """Append the pending captures to an enrolled employee as one session."""
        if not self._pending:
            raise ValidationError("capture at least one face sample")
        employee = self._store.append_embeddings(employee_id, self._pending)
        logger.info(
            f"EnrollmentSession: appended {len(self._pending)} samples to {employee.id} "
            f"(total {employee.num_embeddings})"
        )
        self._finish(employee)
        return employee

    def _finish(self, employee: Employee):
        self._pending = []
        for callback in self._on_commit:
            callback(employee)
