# matching.py
# Face matching utilities

from typing import Mapping, Sequence, Tuple, Union

import numpy as np

from models import Match, Unknown, UNKNOWN


def find_best_match(embedding: np.ndarray, known_embeddings: np.ndarray):
    if known_embeddings.size == 0:
        return None, None
    diffs = known_embeddings - embedding.reshape(1, -1)
    dists = np.linalg.norm(diffs, axis=1)
    # argmin returns the first minimum, so row order decides ties
    idx = int(np.argmin(dists))
    return idx, float(dists[idx])


class MatcherState:
    """
    Immutable snapshot of a roster: one row per reference embedding, rows
    grouped by employee id in ascending order. Rebuild it with build() when
    the roster changes; it never refreshes itself.
    """

    def __init__(self, labels: Tuple[str, ...], embeddings: np.ndarray, threshold: float):
        self._labels = labels
        self._embeddings = embeddings
        self._embeddings.setflags(write=False)
        self.threshold = float(threshold)

    @property
    def size(self) -> int:
        return len(self._labels)

    @property
    def employee_ids(self) -> Tuple[str, ...]:
        return tuple(sorted(set(self._labels)))

    @property
    def dimension(self):
        if self._embeddings.size == 0:
            return None
        return int(self._embeddings.shape[1])

    def match(self, query: np.ndarray) -> Union[Match, Unknown]:
        query = np.asarray(query, dtype="float32").ravel()
        if self.size == 0:
            return UNKNOWN
        if query.shape[0] != self.dimension:
            raise ValueError(
                f"query has dimension {query.shape[0]}, roster has {self.dimension}"
            )

        idx, dist = find_best_match(query, self._embeddings)
        if dist < self.threshold:
            return Match(employee_id=self._labels[idx], distance=dist)
        return Unknown(distance=dist)


def build(roster: Mapping[str, Sequence[np.ndarray]], threshold: float) -> MatcherState:
    """
    roster: employee id -> reference embeddings. Employees without any
    reference are left out. On an exact distance tie the lowest employee id
    wins.
    """
    labels = []
    rows = []
    for employee_id in sorted(roster):
        refs = roster[employee_id]
        if refs is None or len(refs) == 0:
            continue
        for ref in refs:
            ref = np.asarray(ref, dtype="float32")
            if ref.ndim != 1:
                raise ValueError("reference embeddings must be 1D")
            labels.append(employee_id)
            rows.append(ref)

    if not rows:
        return MatcherState((), np.zeros((0, 0), dtype="float32"), threshold)

    if len({r.shape[0] for r in rows}) != 1:
        raise ValueError("reference embeddings must share one dimensionality")

    embeddings = np.vstack(rows).astype("float32")
    return MatcherState(tuple(labels), embeddings, threshold)
