"""Eligibility checks applied to every record before classification.

Each guard returns True when the read must be rejected. Guards are evaluated in
order and have no side effects.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

import pysam

from .models import ScanConfig

ReadGuard = Callable[[pysam.AlignedSegment, ScanConfig], bool]


def _unpaired(read: pysam.AlignedSegment, config: ScanConfig) -> bool:
    return not read.is_paired


def _unmapped(read: pysam.AlignedSegment, config: ScanConfig) -> bool:
    return read.is_unmapped


def _low_mapq(read: pysam.AlignedSegment, config: ScanConfig) -> bool:
    return int(read.mapping_quality) < config.min_mapping_quality


def _duplicate(read: pysam.AlignedSegment, config: ScanConfig) -> bool:
    return config.exclude_duplicates and read.is_duplicate


def _secondary_or_supplementary(read: pysam.AlignedSegment, config: ScanConfig) -> bool:
    return read.is_secondary or read.is_supplementary


def _mate_unmapped_reference(read: pysam.AlignedSegment, config: ScanConfig) -> bool:
    # -1 when RNEXT is '*'
    return read.next_reference_id < 0


READ_GUARDS: List[Tuple[str, ReadGuard]] = [
    ("unpaired", _unpaired),
    ("unmapped", _unmapped),
    ("low_mapq", _low_mapq),
    ("duplicate", _duplicate),
    ("secondary_or_supplementary", _secondary_or_supplementary),
    ("mate_unmapped_reference", _mate_unmapped_reference),
]


def rejection_reason(read: pysam.AlignedSegment, config: ScanConfig) -> Optional[str]:
    """Return the name of the first failing guard, or None if the read is eligible."""
    for name, guard in READ_GUARDS:
        if guard(read, config):
            return name
    return None


def passes_filters(read: pysam.AlignedSegment, config: ScanConfig) -> bool:
    return rejection_reason(read, config) is None
