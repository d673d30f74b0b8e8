import numpy as np
from typing import Tuple

from utils.logging import get_logger
from configs import corpus
from .errors import EmptyCorpusError


logger = get_logger(__name__)


class VectorSampler:
    """
    Uniform sample of at most `sample_cap` seeds, without replacement.

    Bounds the cost of fitting the projection on very large corpora. The
    returned seeds keep the order they have in the input list.
    """

    def __init__(self, sample_cap: int = corpus.SAMPLE_CAP, random_state: int | np.random.RandomState | None = None):
        # A rank-2 projection needs at least two rows to fit
        if int(sample_cap) < 2:
            raise ValueError(f"sample_cap must be at least 2, got {sample_cap}")
        self.sample_cap = int(sample_cap)
        self.random_state = random_state

    def _rng(self) -> np.random.RandomState:
        if isinstance(self.random_state, np.random.RandomState):
            return self.random_state
        return np.random.RandomState(self.random_state)

    def sample(self, seeds: list[str]) -> list[str]:
        n = len(seeds)
        if n == 0:
            raise EmptyCorpusError("No seeds to sample from")
        if n <= self.sample_cap:
            logger.debug(f"[Sampler] Corpus size {n} <= cap {self.sample_cap}, using every seed")
            return list(seeds)
        idx = self._rng().choice(n, size=self.sample_cap, replace=False)
        idx.sort()
        logger.info(f"[Sampler] Sampled {self.sample_cap} / {n} seeds for projection fit")
        return [seeds[int(i)] for i in idx]

    def sample_vectors(self, store) -> Tuple[list[str], np.ndarray]:
        """Sample seeds from a TraceStore and load their vectors."""
        chosen = self.sample(store.seeds)
        return chosen, store.load_matrix(chosen)
