from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

import matplotlib.pyplot as plt

logger = logging.getLogger(__name__)


def plot_category_counts(
    *,
    counts: Dict[str, int],
    max_distance: int,
    out_png: str | Path,
    title: str = "Discordant fragments",
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    labels = ["Inter-chromosomal", f"Long-range (> {max_distance} bp)"]
    values = [
        int(counts.get("inter_chromosomal", 0)),
        int(counts.get("long_range", 0)),
    ]

    plt.figure()
    plt.bar(labels, values)
    plt.ylabel("Fragment count")
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_distance_hist(
    *,
    bin_edges: List[float],
    counts: List[int],
    out_png: str | Path,
    title: str = "Long-range mate distance",
) -> None:
    """Plot the log-binned distance histogram produced by scan_bam.

    Empty leading and trailing bins are dropped so the x-range follows the data.
    """
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    if len(bin_edges) != len(counts) + 1:
        raise ValueError("bin_edges must have length len(counts)+1")

    nonzero = [i for i, c in enumerate(counts) if c > 0]
    lo, hi = (nonzero[0], nonzero[-1] + 1) if nonzero else (0, len(counts))

    plt.figure()
    plt.stairs(counts[lo:hi], bin_edges[lo : hi + 1], fill=True)
    plt.xscale("log")
    plt.xlabel("|pos - mate_pos| (bp)")
    plt.ylabel("Fragment count")
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()
