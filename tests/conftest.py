import numpy as np
import pytest


WIDTH = 128


def trace_row(vector, trailing=0) -> str:
    return ",".join(str(int(v)) for v in vector) + f",{trailing}\n"


def edge_vector(edges, width: int = WIDTH, hits: int = 1) -> np.ndarray:
    vec = np.zeros(width, dtype=np.float32)
    vec[list(edges)] = hits
    return vec


def write_corpus(root, vectors: dict, width: int = WIDTH, raw_rows: dict | None = None):
    """Create <root>/seeds and <root>/traces; raw_rows overrides the trace text per seed name."""
    seed_dir = root / "seeds"
    trace_dir = root / "traces"
    seed_dir.mkdir()
    trace_dir.mkdir()
    for name, vec in vectors.items():
        (seed_dir / name).write_bytes(f"seed-{name}".encode())
        (trace_dir / name).write_text(trace_row(vec, trailing=int(np.sum(vec))))
    for name, text in (raw_rows or {}).items():
        (seed_dir / name).write_bytes(f"seed-{name}".encode())
        (trace_dir / name).write_text(text)
    return seed_dir, trace_dir


@pytest.fixture
def two_group_vectors():
    vectors = {}
    for i in range(3):
        vectors[f"a{i}"] = edge_vector([0, 1, 2])
        vectors[f"b{i}"] = edge_vector([100, 101, 102])
    return vectors


@pytest.fixture
def random_vectors():
    rng = np.random.default_rng(7)
    vectors = {}
    for i in range(40):
        vec = np.zeros(WIDTH, dtype=np.float32)
        hit = rng.choice(WIDTH, size=int(rng.integers(3, 20)), replace=False)
        vec[hit] = rng.integers(1, 8, size=len(hit))
        vectors[f"seed_{i:03d}"] = vec
    return vectors
