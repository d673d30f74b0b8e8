import os
import filecmp
import shutil
import numpy as np
import pandas as pd

from utils.logging import get_logger

logger = get_logger(__name__)


class OutputWriter:
    """Copies selected seeds into the destination corpus directory."""

    def __init__(self, output_dir: str):
        self.output_dir = output_dir

    def write(self, seeds: list[str]) -> list[str]:
        """
        Copy each seed into output_dir under its own file name.

        An existing destination with identical content is left alone; one with
        different content raises FileExistsError instead of being overwritten.
        All destinations are checked before the first copy, and files copied by
        a call that then fails are removed again, so the output directory only
        ever gains the full selection or nothing.
        """
        plan: list[tuple[str, str, bool]] = []
        for seed in seeds:
            dst = os.path.join(self.output_dir, os.path.basename(seed))
            if os.path.exists(dst):
                if os.path.isfile(dst) and filecmp.cmp(seed, dst, shallow=False):
                    plan.append((seed, dst, False))
                    continue
                raise FileExistsError(f"Refusing to overwrite existing output file: {dst}")
            plan.append((seed, dst, True))

        os.makedirs(self.output_dir, exist_ok=True)
        copied: list[str] = []
        try:
            for seed, dst, needs_copy in plan:
                if not needs_copy:
                    logger.debug(f"[Output] Identical file already present, skipping: {dst}")
                    continue
                # Recorded first so a half-written file is removed as well
                copied.append(dst)
                shutil.copy2(seed, dst)
        except OSError:
            logger.error("[Output] Copy failed, removing files written by this call")
            for dst in copied:
                if os.path.exists(dst):
                    os.remove(dst)
            raise
        written = [dst for _, dst, _ in plan]
        logger.info(f"[Output] Wrote {len(written)} seeds -> {self.output_dir} ({len(copied)} copied)")
        return written

    @staticmethod
    def export_report(path: str, seeds: list[str], points: np.ndarray, labels: np.ndarray, selected: list[str]) -> pd.DataFrame:
        """Export per-seed projected coordinates, cluster label and selection flag to CSV."""
        points = np.asarray(points)
        chosen = set(selected)
        df = pd.DataFrame({
            'seed': [os.path.basename(s) for s in seeds],
            'x': points[:, 0] if len(points) else [],
            'y': points[:, 1] if len(points) else [],
            'cluster': np.asarray(labels, dtype=np.int32),
            'selected': [s in chosen for s in seeds],
        })
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        df.to_csv(path, index=False)
        logger.info(f"[Output] Cluster report saved -> {path} (rows={len(df)})")
        return df
