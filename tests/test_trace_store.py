import numpy as np
import pytest

from dataservice.trace_store import TraceStore, parse_record
from conftest import WIDTH, edge_vector, trace_row, write_corpus


def test_parse_record_drops_trailing_field():
    vec = parse_record("1,2,3,4\n", feature_width=3)
    assert vec.dtype == np.float32
    assert vec.tolist() == [1.0, 2.0, 3.0]


def test_parse_record_rejects_wrong_width():
    with pytest.raises(ValueError):
        parse_record("1,2,3\n", feature_width=3)
    with pytest.raises(ValueError):
        parse_record("1,2,3,4,5\n", feature_width=3)


@pytest.mark.parametrize("text", ["", "   \n", "1,x,3,4", "1,-2,3,4", "1,nan,3,4"])
def test_parse_record_rejects_bad_values(text):
    with pytest.raises(ValueError):
        parse_record(text, feature_width=3)


def test_parse_record_trailing_field_need_not_be_numeric():
    vec = parse_record("0,7,1,ab12cd", feature_width=3)
    assert vec.tolist() == [0.0, 7.0, 1.0]


@pytest.mark.parametrize("text", ["1,,3,4", "1,#2,3,4"])
def test_parse_record_rejects_broken_fields(text):
    with pytest.raises(ValueError):
        parse_record(text, feature_width=3)


def test_parse_record_custom_delimiter():
    vec = parse_record("0;5;0;9", feature_width=3, delimiter=";")
    assert vec.tolist() == [0.0, 5.0, 0.0]


def test_discover_keeps_valid_seeds_sorted(tmp_path):
    vectors = {"c": edge_vector([3]), "a": edge_vector([1]), "b": edge_vector([2])}
    seed_dir, trace_dir = write_corpus(tmp_path, vectors)
    store = TraceStore(str(seed_dir), str(trace_dir), feature_width=WIDTH)
    assert store.discover() == 3
    assert [s.split("/")[-1] for s in store.seeds] == ["a", "b", "c"]
    assert len(store) == 3
    assert store.dropped == {}


def test_discover_drops_malformed_and_missing(tmp_path):
    vectors = {"good": edge_vector([1, 2])}
    bad_row = ",".join(["1"] * (WIDTH - 5)) + "\n"
    seed_dir, trace_dir = write_corpus(tmp_path, vectors, raw_rows={"short": bad_row})
    (seed_dir / "orphan").write_bytes(b"no trace")
    store = TraceStore(str(seed_dir), str(trace_dir), feature_width=WIDTH)
    assert store.discover() == 1
    names = {p.split("/")[-1] for p in store.dropped}
    assert names == {"short", "orphan"}
    assert store.dropped[str(seed_dir / "orphan")] == "missing trace"
    assert all(not s.endswith("short") for s in store.seeds)


def test_discover_skips_hidden_and_directories(tmp_path):
    seed_dir, trace_dir = write_corpus(tmp_path, {"x": edge_vector([0])})
    (seed_dir / ".cur_input").write_bytes(b"tmp")
    (seed_dir / "queue").mkdir()
    store = TraceStore(str(seed_dir), str(trace_dir), feature_width=WIDTH)
    assert store.discover() == 1
    assert store.dropped == {}


def test_trace_suffix(tmp_path):
    seed_dir = tmp_path / "seeds"
    trace_dir = tmp_path / "traces"
    seed_dir.mkdir()
    trace_dir.mkdir()
    (seed_dir / "id_0001").write_bytes(b"A")
    (trace_dir / "id_0001.cov").write_text(trace_row(edge_vector([4])))
    store = TraceStore(str(seed_dir), str(trace_dir), feature_width=WIDTH, trace_suffix=".cov")
    assert store.discover() == 1
    assert store.load(store.seeds[0])[4] == 1.0


def test_missing_seed_dir_raises(tmp_path):
    store = TraceStore(str(tmp_path / "nope"), str(tmp_path), feature_width=WIDTH)
    with pytest.raises(FileNotFoundError):
        store.discover()


def test_load_matrix_and_batches(tmp_path, random_vectors):
    seed_dir, trace_dir = write_corpus(tmp_path, random_vectors)
    store = TraceStore(str(seed_dir), str(trace_dir), feature_width=WIDTH)
    store.discover()
    X = store.load_matrix(store.seeds)
    assert X.shape == (40, WIDTH)
    expected = np.stack([random_vectors[s.split("/")[-1]] for s in store.seeds])
    assert np.array_equal(X, expected)

    batches = list(store.iter_batches(batch_size=15))
    assert [len(seeds) for seeds, _ in batches] == [15, 15, 10]
    assert [s for seeds, _ in batches for s in seeds] == store.seeds
    assert np.array_equal(np.concatenate([m for _, m in batches]), X)


def test_load_unknown_seed_raises(tmp_path):
    seed_dir, trace_dir = write_corpus(tmp_path, {"a": edge_vector([0])})
    store = TraceStore(str(seed_dir), str(trace_dir), feature_width=WIDTH)
    store.discover()
    with pytest.raises(KeyError):
        store.load(str(seed_dir / "zzz"))
    with pytest.raises(ValueError):
        list(store.iter_batches(batch_size=0))


def test_discovered_flag(tmp_path):
    seed_dir, trace_dir = write_corpus(tmp_path, {"a": edge_vector([0])})
    store = TraceStore(str(seed_dir), str(trace_dir), feature_width=WIDTH)
    assert not store.discovered
    store.discover()
    assert store.discovered
    store.seed_dir = str(tmp_path / "gone")
    with pytest.raises(FileNotFoundError):
        store.discover()
    assert not store.discovered
