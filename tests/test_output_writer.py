import shutil

import numpy as np
import pandas as pd
import pytest

from dataservice import output_writer
from dataservice.output_writer import OutputWriter


def _seeds(tmp_path, names):
    src = tmp_path / "src"
    src.mkdir()
    paths = []
    for name in names:
        p = src / name
        p.write_bytes(name.encode() * 3)
        paths.append(str(p))
    return src, paths


def test_write_copies_with_same_names(tmp_path):
    src, paths = _seeds(tmp_path, ["id_000", "id_001"])
    out = tmp_path / "out" / "nested"
    written = OutputWriter(str(out)).write(paths)
    assert sorted(p.name for p in out.iterdir()) == ["id_000", "id_001"]
    assert len(written) == 2
    assert (out / "id_001").read_bytes() == b"id_001" * 3
    # Sources untouched
    assert sorted(p.name for p in src.iterdir()) == ["id_000", "id_001"]
    assert (src / "id_000").read_bytes() == b"id_000" * 3


def test_write_keeps_unrelated_files(tmp_path):
    _, paths = _seeds(tmp_path, ["a"])
    out = tmp_path / "out"
    out.mkdir()
    (out / "keep.txt").write_text("mine")
    OutputWriter(str(out)).write(paths)
    assert (out / "keep.txt").read_text() == "mine"
    assert (out / "a").exists()


def test_identical_existing_file_is_skipped(tmp_path):
    _, paths = _seeds(tmp_path, ["a"])
    out = tmp_path / "out"
    OutputWriter(str(out)).write(paths)
    assert OutputWriter(str(out)).write(paths) == [str(out / "a")]


def test_different_existing_file_is_not_overwritten(tmp_path):
    _, paths = _seeds(tmp_path, ["a"])
    out = tmp_path / "out"
    out.mkdir()
    (out / "a").write_bytes(b"other")
    with pytest.raises(FileExistsError):
        OutputWriter(str(out)).write(paths)
    assert (out / "a").read_bytes() == b"other"


def test_conflict_on_later_seed_writes_nothing(tmp_path):
    _, paths = _seeds(tmp_path, ["a", "b"])
    out = tmp_path / "out"
    out.mkdir()
    (out / "b").write_bytes(b"other")
    with pytest.raises(FileExistsError):
        OutputWriter(str(out)).write(paths)
    assert sorted(p.name for p in out.iterdir()) == ["b"]
    assert (out / "b").read_bytes() == b"other"


def test_failed_copy_removes_files_already_copied(tmp_path, monkeypatch):
    _, paths = _seeds(tmp_path, ["a", "b", "c"])
    out = tmp_path / "out"
    out.mkdir()
    (out / "keep.txt").write_text("mine")
    real_copy = shutil.copy2

    def flaky_copy(src, dst):
        if src.endswith("c"):
            raise PermissionError(f"denied: {dst}")
        return real_copy(src, dst)

    monkeypatch.setattr(output_writer.shutil, "copy2", flaky_copy)
    with pytest.raises(PermissionError):
        OutputWriter(str(out)).write(paths)
    assert sorted(p.name for p in out.iterdir()) == ["keep.txt"]


def test_export_report(tmp_path):
    seeds = ["/x/s1", "/x/s2", "/x/s3"]
    points = np.array([[0.0, 1.0], [2.0, 3.0], [4.0, 5.0]], dtype=np.float32)
    path = tmp_path / "report" / "clusters.csv"
    OutputWriter.export_report(str(path), seeds, points, np.array([0, 1, 0]), ["/x/s2"])
    df = pd.read_csv(path)
    assert list(df.columns) == ["seed", "x", "y", "cluster", "selected"]
    assert df["seed"].tolist() == ["s1", "s2", "s3"]
    assert df["cluster"].tolist() == [0, 1, 0]
    assert df["selected"].tolist() == [False, True, False]
    assert df["y"].tolist() == [1.0, 3.0, 5.0]
