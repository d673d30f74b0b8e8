import numpy as np
from typing import Mapping

from utils.logging import get_logger
from configs import corpus


logger = get_logger(__name__)


class SeedSelector:
    """
    Pick up to `n_per_cluster` representative seeds per cluster.

    - Clusters are visited in ascending label order
    - A cluster sharing members with seeds already selected is represented by
      (up to n_per_cluster of) those seeds and adds nothing new
    - Otherwise representatives are drawn from its members:
        * 'random': uniform without replacement
        * 'nearest': closest to the cluster center in projected space

    After select(), `representatives_` maps each label to the seeds that
    stand for it.
    """

    def __init__(self, n_per_cluster: int = corpus.N_PER_CLUSTER, strategy: str = 'random',
                 random_state: int | np.random.RandomState | None = None):
        if int(n_per_cluster) < 1:
            raise ValueError(f"n_per_cluster must be >= 1, got {n_per_cluster}")
        if strategy not in corpus.SELECTION_STRATEGIES:
            raise ValueError(f"strategy must be one of {corpus.SELECTION_STRATEGIES}, got {strategy!r}")
        self.n_per_cluster = int(n_per_cluster)
        self.strategy = strategy
        self.random_state = random_state
        self.representatives_: dict[int, list[str]] = {}

    def _rng(self) -> np.random.RandomState:
        if isinstance(self.random_state, np.random.RandomState):
            return self.random_state
        return np.random.RandomState(self.random_state)

    def _nearest(self, candidates: list[str], center: np.ndarray, points: Mapping[str, np.ndarray]) -> list[str]:
        P = np.stack([np.asarray(points[s], dtype=np.float64) for s in candidates])
        diff = P - np.asarray(center, dtype=np.float64)
        d2 = np.einsum('ij,ij->i', diff, diff)
        order = np.argsort(d2, kind='stable')[:self.n_per_cluster]
        return [candidates[int(i)] for i in order]

    def _pick(self, candidates: list[str], label: int, rng: np.random.RandomState,
              points: Mapping[str, np.ndarray] | None, centers) -> list[str]:
        if len(candidates) <= self.n_per_cluster:
            return list(candidates)
        if self.strategy == 'nearest':
            return self._nearest(candidates, centers[label], points)
        idx = rng.choice(len(candidates), size=self.n_per_cluster, replace=False)
        return [candidates[int(i)] for i in idx]

    def select(self, cluster_members: Mapping[int, list[str]],
               points: Mapping[str, np.ndarray] | None = None,
               centers=None) -> list[str]:
        """
        Return the selected seeds, in the order they were chosen.
        - cluster_members: label -> member seeds
        - points: seed -> projected coordinate (required for 'nearest')
        - centers: indexable by label -> center coordinate (required for 'nearest')
        """
        if self.strategy == 'nearest' and (points is None or centers is None):
            raise ValueError("strategy 'nearest' requires points and centers")
        rng = self._rng()
        selected: list[str] = []
        selected_set: set[str] = set()
        self.representatives_ = {}
        reused = 0
        for label in sorted(cluster_members):
            # Order-preserving de-duplication of the member list
            members = list(dict.fromkeys(cluster_members[label]))
            if not members:
                continue
            overlap = [s for s in members if s in selected_set]
            if overlap:
                reps = self._pick(overlap, label, rng, points, centers)
                self.representatives_[int(label)] = reps
                reused += 1
                logger.debug(f"[Selector] Cluster {label}: {len(overlap)} member(s) already selected, reusing {len(reps)}")
                continue
            reps = self._pick(members, label, rng, points, centers)
            self.representatives_[int(label)] = reps
            selected.extend(reps)
            selected_set.update(reps)
        logger.info(f"[Selector] Selected {len(selected)} seeds from {len(self.representatives_)} clusters (n_per_cluster={self.n_per_cluster}, strategy={self.strategy}, reused={reused})")
        return selected
