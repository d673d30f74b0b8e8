import io
import os
import numpy as np
from typing import Iterator, Tuple

from utils.logging import get_logger
from configs import corpus

logger = get_logger(__name__)


def parse_record(text: str, feature_width: int = corpus.FEATURE_WIDTH, delimiter: str = corpus.TRACE_DELIMITER) -> np.ndarray:
    """
    Parse one delimited trace row into a float32 feature vector.

    The row must carry exactly feature_width + 1 fields; the trailing field is
    not a feature and is dropped. Raises ValueError for any malformed row.
    """
    line = text.strip()
    if not line:
        raise ValueError("empty trace record")
    # Only the first row is the record; anything after it is ignored
    line = line.splitlines()[0].strip()
    n_fields = line.count(delimiter) + 1
    if n_fields != feature_width + 1:
        raise ValueError(f"expected {feature_width + 1} fields, got {n_fields}")
    try:
        values = np.loadtxt(io.StringIO(line), delimiter=delimiter, comments=None,
                            usecols=range(feature_width), dtype=np.float32, ndmin=1)
    except ValueError as e:
        raise ValueError(f"non-numeric field: {e}") from e
    if not np.all(np.isfinite(values)):
        raise ValueError("non-finite feature value")
    if (values < 0).any():
        raise ValueError("negative feature value")
    return values


class TraceStore:
    """
    Coverage vectors for a seed corpus, one trace file per seed.

    - discover(): scan seed_dir, validate each seed's trace record, drop bad ones
    - seeds: valid seed paths in sorted order
    - load(seed) / load_matrix(seeds): read vectors on demand
    - iter_batches(batch_size): stream (seeds, matrix) chunks in store order

    Raw vectors are never cached, only re-read when asked for.
    """

    def __init__(self,
                 seed_dir: str,
                 trace_dir: str,
                 feature_width: int = corpus.FEATURE_WIDTH,
                 delimiter: str = corpus.TRACE_DELIMITER,
                 trace_suffix: str = corpus.TRACE_SUFFIX):
        if int(feature_width) <= 0:
            raise ValueError(f"feature_width must be positive, got {feature_width}")
        self.seed_dir = seed_dir
        self.trace_dir = trace_dir
        self.feature_width = int(feature_width)
        self.delimiter = delimiter
        self.trace_suffix = trace_suffix
        self._seeds: list[str] = []
        self._trace_paths: dict[str, str] = {}
        self.dropped: dict[str, str] = {}
        self.discovered = False

    @property
    def seeds(self) -> list[str]:
        return list(self._seeds)

    def __len__(self) -> int:
        return len(self._seeds)

    def trace_path(self, seed: str) -> str:
        name = os.path.basename(seed)
        return os.path.join(self.trace_dir, corpus.trace_name_for_seed(name, self.trace_suffix))

    def _list_seed_files(self) -> list[str]:
        if not os.path.isdir(self.seed_dir):
            raise FileNotFoundError(f"Seed directory not found: {self.seed_dir}")
        files: list[str] = []
        for fname in sorted(os.listdir(self.seed_dir)):
            if fname.startswith('.'):
                continue
            fp = os.path.join(self.seed_dir, fname)
            if os.path.isfile(fp):
                files.append(fp)
        return files

    def _read_record(self, trace_path: str) -> np.ndarray:
        with open(trace_path, 'r', encoding='utf-8', errors='replace') as f:
            text = f.read()
        return parse_record(text, self.feature_width, self.delimiter)

    def discover(self) -> int:
        """Validate every seed's trace record once; return the number of usable seeds."""
        self._seeds = []
        self._trace_paths = {}
        self.dropped = {}
        self.discovered = False
        seed_files = self._list_seed_files()
        logger.debug(f"[TraceStore] Scanning {len(seed_files)} seed files in {self.seed_dir}")
        for seed in seed_files:
            tp = self.trace_path(seed)
            if not os.path.isfile(tp):
                self.dropped[seed] = "missing trace"
                logger.warning(f"[TraceStore] No trace for {os.path.basename(seed)}: {tp}")
                continue
            try:
                self._read_record(tp)
            except ValueError as e:
                self.dropped[seed] = str(e)
                logger.warning(f"[TraceStore] Dropping malformed trace for {os.path.basename(seed)}: {e}")
                continue
            self._seeds.append(seed)
            self._trace_paths[seed] = tp
        logger.info(f"[TraceStore] {len(self._seeds)} valid seeds, {len(self.dropped)} dropped (feature_width={self.feature_width})")
        self.discovered = True
        return len(self._seeds)

    def load(self, seed: str) -> np.ndarray:
        if seed not in self._trace_paths:
            raise KeyError(f"Unknown or invalid seed: {seed}")
        return self._read_record(self._trace_paths[seed])

    def load_matrix(self, seeds: list[str]) -> np.ndarray:
        X = np.empty((len(seeds), self.feature_width), dtype=np.float32)
        for i, seed in enumerate(seeds):
            X[i] = self.load(seed)
        return X

    def iter_batches(self, batch_size: int = corpus.TRANSFORM_BATCH_SIZE) -> Iterator[Tuple[list[str], np.ndarray]]:
        if int(batch_size) <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        n = len(self._seeds)
        for start in range(0, n, int(batch_size)):
            end = min(start + int(batch_size), n)
            chunk = self._seeds[start:end]
            yield chunk, self.load_matrix(chunk)
