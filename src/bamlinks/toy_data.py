from __future__ import annotations

import random
from pathlib import Path
from typing import Dict, List, Tuple

import pysam

from .utils import ensure_outdir, write_json

CONTIGS: List[Tuple[str, int]] = [("chr1", 50_000), ("chr2", 50_000), ("chr3", 50_000)]

# (fragment, (tid, pos0) of read 1, (tid, pos0) of read 2)
TOY_FRAGMENTS: List[Tuple[str, Tuple[int, int], Tuple[int, int]]] = [
    ("A", (0, 100), (0, 150)),  # concordant
    ("B", (0, 1_000), (1, 500)),  # inter-chromosomal
    ("C", (2, 1_000), (2, 16_000)),  # long-range, 15 kb apart
]

READ_LEN = 50


def make_pair(
    name: str,
    first: Tuple[int, int],
    second: Tuple[int, int],
    *,
    seq: str = "A" * READ_LEN,
    mapq: int = 60,
    extra_flags: int = 0,
) -> List[pysam.AlignedSegment]:
    """Build both mates of a paired fragment with mutually consistent mate fields."""
    reads = []
    for (tid, pos), (mtid, mpos), mate_flag in (
        (first, second, 0x40),
        (second, first, 0x80),
    ):
        a = pysam.AlignedSegment()
        a.query_name = name
        a.query_sequence = seq
        a.flag = 0x1 | mate_flag | extra_flags
        a.reference_id = tid
        a.reference_start = pos
        a.next_reference_id = mtid
        a.next_reference_start = mpos
        a.mapping_quality = mapq
        a.cigartuples = [(0, len(seq))]
        a.query_qualities = pysam.qualitystring_to_array("I" * len(seq))
        reads.append(a)
    return reads


def write_sorted_bam(
    path: str | Path,
    reads: List[pysam.AlignedSegment],
    contigs: List[Tuple[str, int]] = CONTIGS,
) -> Path:
    """Coordinate-sort ``reads``, write them as BAM, and index it."""
    header = {
        "HD": {"VN": "1.6", "SO": "coordinate"},
        "SQ": [{"SN": name, "LN": length} for name, length in contigs],
    }
    # unplaced reads (tid -1) go last
    ordered = sorted(
        reads,
        key=lambda r: (r.reference_id < 0, r.reference_id, r.reference_start),
    )
    path = Path(path)
    with pysam.AlignmentFile(str(path), "wb", header=header) as bam:
        for r in ordered:
            bam.write(r)
    pysam.index(str(path))
    return path


def make_toy_data(*, outdir: str | Path) -> Dict[str, str]:
    """Create a tiny indexed paired-end BAM suitable for quick demos/tests.

    Fragment A is concordant (mates 50 bp apart on chr1), B links chr1 to chr2,
    and C has mates 15,000 bp apart on chr3.

    Returns
    -------
    dict
        Paths to the generated files.
    """
    outdir_p = ensure_outdir(outdir)
    rng = random.Random(7)

    reads: List[pysam.AlignedSegment] = []
    for name, first, second in TOY_FRAGMENTS:
        seq = "".join(rng.choice("ACGT") for _ in range(READ_LEN))
        reads.extend(make_pair(name, first, second, seq=seq))

    bam_path = write_sorted_bam(outdir_p / "toy.bam", reads)

    summary = {
        "toy_bam": str(bam_path),
        "outdir": str(outdir_p),
    }
    write_json(outdir_p / "toy_summary.json", summary)
    return summary
