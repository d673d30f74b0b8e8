import time
import numpy as np
from dataclasses import dataclass
from sklearn.cluster import MeanShift
from sklearn.neighbors import NearestNeighbors

from utils.logging import get_logger
from configs import corpus


logger = get_logger(__name__)


@dataclass
class ClusterResult:
    labels: np.ndarray
    centers: np.ndarray
    bandwidth: float
    degenerate: bool = False

    @property
    def n_clusters(self) -> int:
        return int(self.centers.shape[0])

    def sizes(self) -> dict[int, int]:
        unique, counts = np.unique(self.labels, return_counts=True)
        return {int(lb): int(cnt) for lb, cnt in zip(unique, counts)}

    def members(self, seeds: list[str]) -> dict[int, list[str]]:
        """Map label -> member seeds (index-aligned with labels), ascending label order."""
        if len(seeds) != len(self.labels):
            raise ValueError(f"Got {len(seeds)} seeds for {len(self.labels)} labels")
        out: dict[int, list[str]] = {}
        for lb in np.unique(self.labels):
            idx = np.where(self.labels == lb)[0]
            out[int(lb)] = [seeds[int(i)] for i in idx]
        return out


class DensityClusterer:
    """
    Mean-shift clustering of projected points with an auto-estimated bandwidth.

    The bandwidth is the mean distance from each distinct point to its k-th
    nearest other distinct point, k = quantile * n_distinct, divided by
    `damping` for finer clusters. A non-positive bandwidth (all points equal)
    puts everything into one cluster.

    With more than `bandwidth_samples` distinct points the estimate is taken
    on a random subsample of that size, so neighbour queries stay at
    `batch_size x (k + 1)` with k bounded by the subsample.
    """

    def __init__(
        self,
        *,
        quantile: float = corpus.BANDWIDTH_QUANTILE,
        damping: float = corpus.BANDWIDTH_DAMPING,
        bin_seeding: bool = True,
        bandwidth_samples: int | None = corpus.BANDWIDTH_SAMPLES,
        dedup_tol: float = 1e-4,
        batch_size: int = 500,
        random_state: int | np.random.RandomState | None = None,
    ) -> None:
        if not 0.0 < float(quantile) <= 1.0:
            raise ValueError(f"quantile must be in (0, 1], got {quantile}")
        if float(damping) <= 0.0:
            raise ValueError(f"damping must be positive, got {damping}")
        if bandwidth_samples is not None and int(bandwidth_samples) < 2:
            raise ValueError(f"bandwidth_samples must be at least 2 or None, got {bandwidth_samples}")
        if int(batch_size) <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.quantile = float(quantile)
        self.damping = float(damping)
        self.bin_seeding = bool(bin_seeding)
        self.bandwidth_samples = None if bandwidth_samples is None else int(bandwidth_samples)
        self.dedup_tol = float(dedup_tol)
        self.batch_size = int(batch_size)
        self.random_state = random_state

    def _rng(self) -> np.random.RandomState:
        if isinstance(self.random_state, np.random.RandomState):
            return self.random_state
        return np.random.RandomState(self.random_state)

    def distinct_points(self, Z: np.ndarray) -> np.ndarray:
        """Rows of Z with near-duplicates (within dedup_tol of the data scale) collapsed."""
        Z = np.asarray(Z, dtype=np.float64)
        if len(Z) == 0:
            return Z
        scale = float(np.abs(Z).max())
        if scale == 0.0:
            return Z[:1]
        grid = np.round(Z / (scale * self.dedup_tol))
        _, first = np.unique(grid, axis=0, return_index=True)
        return Z[np.sort(first)]

    def estimate_bandwidth(self, Z: np.ndarray) -> float:
        # Duplicate coordinates would make every k-th neighbour distance zero
        U = self.distinct_points(Z)
        n = len(U)
        if n < 2:
            logger.debug(f"[MeanShift] {n} distinct point(s), bandwidth=0")
            return 0.0
        n_distinct = n
        # k grows with n, so the neighbour search runs on a bounded subsample
        if self.bandwidth_samples is not None and n > self.bandwidth_samples:
            pick = np.sort(self._rng().choice(n, size=self.bandwidth_samples, replace=False))
            U = U[pick]
            n = len(U)
        k = min(max(1, int(n * self.quantile)), n - 1)
        nn = NearestNeighbors(n_neighbors=k + 1)
        nn.fit(U)
        total = 0.0
        for start in range(0, n, self.batch_size):
            end = min(start + self.batch_size, n)
            d, _ = nn.kneighbors(U[start:end], return_distance=True)
            # Column 0 is the point itself
            total += float(d[:, k].sum())
        bandwidth = total / n
        logger.debug(f"[MeanShift] Bandwidth estimate: distinct={n_distinct}, used={n}, k={k}, bandwidth={bandwidth:.6f}")
        return bandwidth

    def fit(self, Z: np.ndarray) -> ClusterResult:
        Z = np.asarray(Z, dtype=np.float64)
        if Z.ndim != 2 or len(Z) == 0:
            raise ValueError("DensityClusterer.fit needs a non-empty (n, d) array")
        time_start = time.time()
        raw = self.estimate_bandwidth(Z)
        bandwidth = raw / self.damping
        if not np.isfinite(bandwidth) or bandwidth <= 0.0:
            logger.warning(f"[MeanShift] Degenerate bandwidth ({bandwidth}), using a single cluster for {len(Z)} points")
            labels = np.zeros(len(Z), dtype=np.int32)
            centers = Z.mean(axis=0, keepdims=True)
            return ClusterResult(labels=labels, centers=centers, bandwidth=float(bandwidth), degenerate=True)

        logger.debug(f"[MeanShift] Fitting MeanShift(bandwidth={bandwidth:.6f}, bin_seeding={self.bin_seeding}) on {len(Z)} points")
        ms = MeanShift(bandwidth=bandwidth, bin_seeding=self.bin_seeding, cluster_all=True)
        ms.fit(Z)
        labels, centers = self._compact(ms.labels_, ms.cluster_centers_)
        result = ClusterResult(labels=labels, centers=centers, bandwidth=float(bandwidth))
        sizes = result.sizes()
        logger.info(f"[MeanShift] {result.n_clusters} clusters from {len(Z)} points in {time.time() - time_start:.2f} seconds (bandwidth={bandwidth:.4f}, raw={raw:.4f})")
        logger.debug(f"[MeanShift] Cluster sizes: {sizes}")
        return result

    @staticmethod
    def _compact(labels: np.ndarray, centers: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Drop centers that received no points and renumber labels 0..k-1 in center order."""
        used = np.unique(labels)
        remap = np.full(centers.shape[0], -1, dtype=np.int32)
        remap[used] = np.arange(len(used), dtype=np.int32)
        return remap[labels], centers[used]
