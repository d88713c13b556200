from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Set

INTERCHR = "INTERCHR"
LONGRANGE = "LONGRANGE"


@dataclass(frozen=True)
class ScanConfig:
    """Options for one scan run.

    Attributes
    ----------
    input_path:
        Sorted, indexed alignment file (BAM/CRAM/SAM).
    output_path:
        Output container receiving the discordant records.
    max_distance:
        Same-reference mates farther apart than this (strictly) are long-range.
    min_mapping_quality:
        Reads with MAPQ below this value are skipped.
    exclude_duplicates:
        Skip reads flagged as PCR/optical duplicates.
    summary_only:
        Suppress per-fragment lines and record output; counts are unaffected.
    """

    input_path: str
    output_path: str
    max_distance: int = 10_000
    min_mapping_quality: int = 0
    exclude_duplicates: bool = False
    summary_only: bool = False

    def validate(self) -> None:
        if self.max_distance < 0:
            raise ValueError("max_distance must be >= 0")
        if not 0 <= self.min_mapping_quality <= 255:
            raise ValueError("min_mapping_quality must be within 0..255")


@dataclass
class ClassifierState:
    """Per-run state: reported fragment names and per-category counts."""

    seen: Set[str] = field(default_factory=set)
    inter_count: int = 0
    long_count: int = 0

    @property
    def total(self) -> int:
        return self.inter_count + self.long_count


@dataclass(frozen=True)
class DiscordantLink:
    """One reported discordant fragment, as seen from the first mate in stream order."""

    qname: str
    chrom: str
    pos: int
    mate_chrom: str
    mate_pos: int
    category: str  # INTERCHR or LONGRANGE
    distance: Optional[int] = None
