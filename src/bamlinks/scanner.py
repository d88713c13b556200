from __future__ import annotations

import logging
import sys
import time
from typing import Dict, Iterable, Optional, TextIO

import numpy as np
import pysam
from tqdm import tqdm

from .bamio import iter_records, sink_file, source_file, write_record
from .classifier import DiscordanceClassifier
from .models import ScanConfig
from .report import build_link, format_link_line, format_summary

logger = logging.getLogger(__name__)


def scan_bam(
    config: ScanConfig,
    *,
    out: Optional[TextIO] = None,
    progress: bool = True,
) -> Dict[str, object]:
    """Main workhorse: stream the input once, emit discordant fragments, return summary dict.

    One line per newly reported fragment is written to ``out`` (stdout by default)
    and the record itself to ``config.output_path``, both suppressed when
    ``config.summary_only`` is set. The summary block is always written after
    the input is exhausted; on error nothing further is written.
    """
    t0 = time.time()
    config.validate()
    if out is None:
        out = sys.stdout

    classifier = DiscordanceClassifier(config)

    # log10-spaced bins from 1 bp to 10 Gbp
    distance_bins = np.logspace(0, 10, 101)
    distance_counts = np.zeros(len(distance_bins) - 1, dtype=np.int64)

    counts = {
        "reads_total": 0,
        "reads_written": 0,
    }

    with source_file(config.input_path) as bam:
        references = list(bam.references)
        with sink_file(config.output_path, bam) as sink:
            it: Iterable[pysam.AlignedSegment] = iter_records(bam)
            if progress:
                it = tqdm(it, unit="read", desc="Scanning reads")

            for read in it:
                counts["reads_total"] += 1

                category = classifier.observe(read)
                if category is None:
                    continue

                link = build_link(read, category, references)
                if link.distance is not None:
                    distance_counts += np.histogram([link.distance], bins=distance_bins)[0]

                if config.summary_only:
                    continue

                write_record(sink, read)
                counts["reads_written"] += 1
                out.write(format_link_line(link) + "\n")

    for line in format_summary(classifier.inter_count, classifier.long_count, config.max_distance):
        out.write(line + "\n")
    out.flush()

    dt = time.time() - t0
    logger.info(
        "Processed %d records in %.1fs: %d inter-chromosomal, %d long-range",
        counts["reads_total"],
        dt,
        classifier.inter_count,
        classifier.long_count,
    )

    counts["inter_chromosomal"] = classifier.inter_count
    counts["long_range"] = classifier.long_count
    counts["total_discordant"] = classifier.state.total

    return {
        "input_path": str(config.input_path),
        "output_path": str(config.output_path),
        "max_distance": int(config.max_distance),
        "min_mapping_quality": int(config.min_mapping_quality),
        "exclude_duplicates": bool(config.exclude_duplicates),
        "summary_only": bool(config.summary_only),
        "counts": counts,
        "distance_hist": {
            "bin_edges": distance_bins.tolist(),
            "counts": distance_counts.tolist(),
        },
        "runtime_seconds": float(dt),
    }
