"""Alignment file access: the record source and the record sink.

All pysam access goes through this module so that failures surface as one of
three exception types:

- ``SourceError``: the input is missing, unindexed or cannot be opened.
- ``SinkError``: the output cannot be created or written.
- ``RecordError``: a record is malformed mid-stream.

No retries are attempted; every error is fatal for the run.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Type

import pysam

logger = logging.getLogger(__name__)


class BamLinksError(RuntimeError):
    """Base class for run-level failures."""


class SourceError(BamLinksError):
    """Raised when the input alignment file is unreadable, unindexed or malformed."""


class SinkError(BamLinksError):
    """Raised when the output alignment file cannot be created or written."""


class RecordError(BamLinksError):
    """Raised when a single alignment record is malformed."""


_INDEX_SUFFIXES = (".bai", ".csi", ".crai")


def check_index(path: str | Path) -> None:
    """Ensure an alignment file has an index; raise SourceError with fix instructions."""
    aln = Path(path)
    for suffix in _INDEX_SUFFIXES:
        if aln.with_suffix(aln.suffix + suffix).exists() or aln.with_suffix(suffix).exists():
            return
    raise SourceError("Alignment file is not indexed. Run: samtools index " + str(aln))


def open_source(path: str | Path) -> pysam.AlignmentFile:
    """Open a sorted, indexed alignment file for reading."""
    p = Path(path)
    if not p.exists():
        raise SourceError(f"Input alignment file does not exist: {p}")
    check_index(p)
    try:
        source = pysam.AlignmentFile(str(p), "r")
    except (OSError, ValueError) as e:
        raise SourceError(f"Cannot open {p}: {e}") from e
    logger.info("Opened %s (%d reference sequences)", p, source.nreferences)
    return source


def _write_mode(template: pysam.AlignmentFile) -> str:
    if template.is_cram:
        return "wc"
    if template.is_bam:
        return "wb"
    return "wh"


def open_sink(path: str | Path, template: pysam.AlignmentFile) -> pysam.AlignmentFile:
    """Create the output file with the same header and container kind as ``template``."""
    p = Path(path)
    try:
        sink = pysam.AlignmentFile(str(p), _write_mode(template), template=template)
    except (OSError, ValueError) as e:
        raise SinkError(f"Cannot create {p}: {e}") from e
    logger.debug("Opened output %s", p)
    return sink


def iter_records(source: pysam.AlignmentFile) -> Iterator[pysam.AlignedSegment]:
    """Yield every record in file order, including unplaced reads."""
    it = source.fetch(until_eof=True)
    while True:
        try:
            read = next(it)
        except StopIteration:
            return
        except (OSError, ValueError) as e:
            raise RecordError(f"Malformed alignment record: {e}") from e
        yield read


def write_record(sink: pysam.AlignmentFile, read: pysam.AlignedSegment) -> None:
    try:
        sink.write(read)
    except (OSError, ValueError) as e:
        raise SinkError(f"Failed to write record {read.query_name}: {e}") from e


@contextmanager
def _closing(
    handle: pysam.AlignmentFile, error_cls: Type[BamLinksError], what: str
) -> Iterator[pysam.AlignmentFile]:
    # A close failure must not replace an exception that is already propagating.
    try:
        yield handle
    except BaseException:
        try:
            handle.close()
        except OSError as e:
            logger.warning("Failed to close %s after an earlier error: %s", what, e)
        raise
    try:
        handle.close()
    except OSError as e:
        raise error_cls(f"Failed to close {what}: {e}") from e


def source_file(path: str | Path):
    """Open the input for a ``with`` block; a failed close raises SourceError."""
    return _closing(open_source(path), SourceError, str(path))


def sink_file(path: str | Path, template: pysam.AlignmentFile):
    """Open the output for a ``with`` block; a failed close (final flush) raises SinkError."""
    return _closing(open_sink(path, template), SinkError, str(path))
