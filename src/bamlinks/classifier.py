from __future__ import annotations

import logging
from typing import Optional

import pysam

from .bamio import RecordError
from .filters import passes_filters
from .models import INTERCHR, LONGRANGE, ClassifierState, ScanConfig

logger = logging.getLogger(__name__)


def classify_pair(
    reference_id: int,
    mate_reference_id: int,
    pos: int,
    mate_pos: int,
    max_distance: int,
) -> Optional[str]:
    """Return INTERCHR, LONGRANGE, or None for a concordant pair.

    Positions are 0-based; the long-range test is strictly greater than ``max_distance``.
    """
    if reference_id != mate_reference_id:
        return INTERCHR
    if abs(pos - mate_pos) > max_distance:
        return LONGRANGE
    return None


class DiscordanceClassifier:
    """Single-pass classifier that reports each discordant fragment at most once.

    Mates are not joined: the first mate of a fragment seen in stream order is
    counted, and later observations of the same query name are dropped.
    """

    def __init__(self, config: ScanConfig) -> None:
        self.config = config
        self.state = ClassifierState()

    def observe(self, read: pysam.AlignedSegment) -> Optional[str]:
        """Process one record; return its category only if the fragment is newly reported."""
        if not passes_filters(read, self.config):
            return None

        category = classify_pair(
            int(read.reference_id),
            int(read.next_reference_id),
            int(read.reference_start),
            int(read.next_reference_start),
            self.config.max_distance,
        )
        if category is None:
            return None

        qname = read.query_name
        if qname is None:
            raise RecordError("Discordant record has no query name")
        if qname in self.state.seen:
            return None
        self.state.seen.add(qname)

        if category == INTERCHR:
            self.state.inter_count += 1
        else:
            self.state.long_count += 1
        logger.debug("%s classified %s", qname, category)
        return category

    @property
    def inter_count(self) -> int:
        return self.state.inter_count

    @property
    def long_count(self) -> int:
        return self.state.long_count
