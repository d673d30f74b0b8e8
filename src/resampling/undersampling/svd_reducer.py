import os
import time
import numpy as np
import joblib
from typing import Iterable, Tuple
from sklearn.decomposition import TruncatedSVD
from tqdm import tqdm

from utils.logging import get_logger
from configs import corpus
from .errors import InsufficientSampleError


logger = get_logger(__name__)


class SVDReducer:
    """
    Rank-2 linear projection of coverage vectors.

    Methods:
    - fit(X): fit TruncatedSVD on a (sampled) vector matrix
    - transform(X): project any vectors with the fitted model
    - transform_batches(batches): project (seeds, X) chunks, keeping only the 2-D output
    - save(path) / load(path): persist the fitted reducer with joblib

    The model is fit once and reused unchanged for every batch, so all
    projected points share one coordinate space.
    """

    def __init__(self, n_components: int = corpus.N_COMPONENTS, n_iter: int = 5,
                 random_state: int | np.random.RandomState | None = None):
        self.n_components = int(n_components)
        self.n_iter = int(n_iter)
        self.random_state = random_state
        self._svd: TruncatedSVD | None = None
        self.n_features_: int | None = None

    @property
    def fitted(self) -> bool:
        return self._svd is not None

    @property
    def components_(self) -> np.ndarray | None:
        return None if self._svd is None else self._svd.components_

    def fit(self, X: np.ndarray) -> "SVDReducer":
        X = np.asarray(X, dtype=np.float32)
        if X.ndim != 2 or X.shape[0] < 2:
            n = X.shape[0] if X.ndim == 2 else 0
            raise InsufficientSampleError(
                f"Need at least 2 vectors to fit a rank-{self.n_components} projection, got {n}"
            )
        if X.shape[1] < self.n_components:
            raise ValueError(f"Vectors have {X.shape[1]} features, fewer than n_components={self.n_components}")
        time_start = time.time()
        logger.debug(f"[SVD] Fitting TruncatedSVD(n_components={self.n_components}) on X.shape={X.shape}")
        svd = TruncatedSVD(n_components=self.n_components, algorithm='randomized',
                           n_iter=self.n_iter, random_state=self.random_state)
        # Identical rows give zero total variance; the ratio is then nan, not an error
        with np.errstate(divide='ignore', invalid='ignore'):
            svd.fit(X)
        self._svd = svd
        self.n_features_ = int(X.shape[1])
        ratio = np.nan_to_num(svd.explained_variance_ratio_).sum()
        logger.info(f"[SVD] Fit done on {X.shape[0]} vectors in {time.time() - time_start:.2f} seconds | explained variance ratio={ratio:.4f}")
        return self

    def transform(self, X: np.ndarray) -> np.ndarray:
        if self._svd is None:
            raise RuntimeError("SVDReducer not fitted. Call fit() first or load() a saved model.")
        X = np.asarray(X, dtype=np.float32)
        if X.ndim == 1:
            X = X.reshape(1, -1)
        if X.shape[1] != self.n_features_:
            raise ValueError(f"Expected {self.n_features_} features, got {X.shape[1]}")
        return self._svd.transform(X).astype(np.float32, copy=False)

    def transform_batches(self, batches: Iterable[Tuple[list[str], np.ndarray]],
                          total: int | None = None) -> Tuple[list[str], np.ndarray]:
        """Project every chunk; raw chunks are dropped as soon as they are reduced."""
        seeds: list[str] = []
        parts: list[np.ndarray] = []
        rows_bar = tqdm(total=total, desc="SVD transform rows", unit="rows", disable=None)
        for part_idx, (chunk_seeds, X) in enumerate(batches):
            Z = self.transform(X)
            logger.debug(f"[SVD] Transform part {part_idx}: X.shape={X.shape} -> Z.shape={Z.shape}")
            seeds.extend(chunk_seeds)
            parts.append(Z)
            rows_bar.update(len(chunk_seeds))
        rows_bar.close()
        if not parts:
            return seeds, np.empty((0, self.n_components), dtype=np.float32)
        return seeds, np.concatenate(parts, axis=0)

    def save(self, path: str) -> None:
        if self._svd is None:
            raise RuntimeError("Cannot save an unfitted SVDReducer")
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        joblib.dump(self, path)
        logger.info(f"[SVD] Reducer saved -> {path}")

    @staticmethod
    def load(path: str) -> "SVDReducer":
        if not os.path.exists(path):
            raise FileNotFoundError(f"Reducer model not found: {path}")
        reducer = joblib.load(path)
        if not isinstance(reducer, SVDReducer) or not reducer.fitted:
            raise ValueError(f"Not a fitted SVDReducer: {path}")
        logger.info(f"[SVD] Loaded reducer: n_components={reducer.n_components}, n_features={reducer.n_features_}")
        return reducer
