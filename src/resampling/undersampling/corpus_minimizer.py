import time
import numpy as np
from dataclasses import dataclass, field

from utils.logging import get_logger
from configs import corpus
from dataservice.trace_store import TraceStore
from dataservice.output_writer import OutputWriter
from .errors import CorpusMinimizationError, EmptyCorpusError, InsufficientSampleError
from .vector_sampler import VectorSampler
from .svd_reducer import SVDReducer
from .meanshift import ClusterResult, DensityClusterer
from .seed_selector import SeedSelector


logger = get_logger(__name__)

__all__ = [
    'MinimizeOptions',
    'MinimizationResult',
    'CorpusMinimizer',
    'CorpusMinimizationError',
    'EmptyCorpusError',
    'InsufficientSampleError',
]


@dataclass
class MinimizeOptions:
    # Projection fit
    sample_cap: int = corpus.SAMPLE_CAP
    batch_size: int = corpus.TRANSFORM_BATCH_SIZE

    # Bandwidth
    quantile: float = corpus.BANDWIDTH_QUANTILE
    damping: float = corpus.BANDWIDTH_DAMPING
    bin_seeding: bool = True
    bandwidth_samples: int | None = corpus.BANDWIDTH_SAMPLES

    # Selection
    n_per_cluster: int = corpus.N_PER_CLUSTER
    strategy: str = 'random'

    random_state: int | None = corpus.RANDOM_STATE


@dataclass
class MinimizationResult:
    seeds: list[str]
    points: np.ndarray
    clusters: ClusterResult
    selected: list[str]
    fit_sample: list[str] = field(default_factory=list)

    @property
    def n_clusters(self) -> int:
        return self.clusters.n_clusters

    def members(self) -> dict[int, list[str]]:
        return self.clusters.members(self.seeds)


def _stage_seeds(random_state: int | None, n: int = 4) -> list[int | None]:
    """Independent per-stage seeds derived from one run seed (all None when unseeded)."""
    if random_state is None:
        return [None] * n
    rng = np.random.RandomState(int(random_state))
    return [int(s) for s in rng.randint(0, 2**31 - 1, size=n)]


class CorpusMinimizer:
    """
    Trace-vector reduction and cluster-based seed selection.

    TraceStore -> VectorSampler -> SVDReducer.fit -> SVDReducer.transform (batched)
    -> DensityClusterer -> SeedSelector [-> OutputWriter]

    Pass a fitted `reducer` to skip sampling and fitting.
    """

    def __init__(self, store: TraceStore, options: MinimizeOptions | None = None, reducer: SVDReducer | None = None):
        self.store = store
        self.options = options or MinimizeOptions()
        self.reducer = reducer
        sampler_seed, svd_seed, cluster_seed, select_seed = _stage_seeds(self.options.random_state)
        self.sampler = VectorSampler(sample_cap=self.options.sample_cap, random_state=sampler_seed)
        self._svd_seed = svd_seed
        self.clusterer = DensityClusterer(
            quantile=self.options.quantile,
            damping=self.options.damping,
            bin_seeding=self.options.bin_seeding,
            bandwidth_samples=self.options.bandwidth_samples,
            random_state=cluster_seed,
        )
        self.selector = SeedSelector(
            n_per_cluster=self.options.n_per_cluster,
            strategy=self.options.strategy,
            random_state=select_seed,
        )

    def _fit_reducer(self) -> list[str]:
        sample_seeds, X_sample = self.sampler.sample_vectors(self.store)
        logger.debug(f"[Minimizer] Fit sample: {len(sample_seeds)} vectors, shape={X_sample.shape}")
        self.reducer = SVDReducer(random_state=self._svd_seed).fit(X_sample)
        return sample_seeds

    def run(self) -> MinimizationResult:
        if not self.store.discovered:
            raise RuntimeError("TraceStore has not been discovered; call store.discover() before run()")
        n = len(self.store)
        if n == 0:
            raise EmptyCorpusError("No seeds with a valid trace; nothing to do")
        time_start = time.time()
        logger.info(f"[Minimizer] Reducing {n} seeds (sample_cap={self.options.sample_cap}, batch_size={self.options.batch_size}, random_state={self.options.random_state})")

        fit_sample: list[str] = []
        if self.reducer is None:
            fit_sample = self._fit_reducer()
        elif self.reducer.n_features_ != self.store.feature_width:
            raise ValueError(f"Reducer expects {self.reducer.n_features_} features, traces have {self.store.feature_width}")

        seeds, Z = self.reducer.transform_batches(self.store.iter_batches(self.options.batch_size), total=n)
        clusters = self.clusterer.fit(Z)
        points = dict(zip(seeds, Z)) if self.options.strategy == 'nearest' else None
        selected = self.selector.select(clusters.members(seeds), points=points, centers=clusters.centers)

        logger.info(f"[Minimizer] {n} seeds -> {clusters.n_clusters} clusters -> {len(selected)} selected in {time.time() - time_start:.2f} seconds")
        return MinimizationResult(seeds=seeds, points=Z, clusters=clusters, selected=selected, fit_sample=fit_sample)

    def minimize(self, output_dir: str, report_path: str | None = None) -> MinimizationResult:
        """Run the pipeline, then copy the selection; nothing is written if the run fails."""
        result = self.run()
        OutputWriter(output_dir).write(result.selected)
        if report_path:
            OutputWriter.export_report(report_path, result.seeds, result.points, result.clusters.labels, result.selected)
        return result
