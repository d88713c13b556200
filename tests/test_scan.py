import io
import random
from contextlib import contextmanager
from pathlib import Path

import pysam
import pytest

from bamlinks import bamio, scanner
from bamlinks.bamio import RecordError, SinkError, SourceError
from bamlinks.models import ScanConfig
from bamlinks.scanner import scan_bam
from bamlinks.toy_data import make_pair, write_sorted_bam


def _scan(bam: Path, out_bam: Path, **kw):
    buf = io.StringIO()
    config = ScanConfig(input_path=str(bam), output_path=str(out_bam), **kw)
    run = scan_bam(config, out=buf, progress=False)
    return run, buf.getvalue().splitlines()


def _names(bam: Path) -> list:
    with pysam.AlignmentFile(str(bam), "rb") as f:
        return [r.query_name for r in f.fetch(until_eof=True)]


def test_toy_scenario(toy_bam: Path, tmp_path: Path):
    out_bam = tmp_path / "links.bam"
    run, lines = _scan(toy_bam, out_bam)

    assert lines[:2] == [
        "B\tchr1:1000\tchr2:500\tINTERCHR",
        "C\tchr3:1000\tchr3:16000\tLONGRANGE",
    ]
    assert lines[-3:] == [
        "Inter-chromosomal pairs: 1",
        "Long-range pairs (> 10000 bp): 1",
        "Total discordant pairs: 2",
    ]
    assert not any(line.startswith("A\t") for line in lines)

    counts = run["counts"]
    assert counts["reads_total"] == 6
    assert counts["reads_written"] == 2
    assert counts["inter_chromosomal"] == 1
    assert counts["long_range"] == 1
    assert counts["total_discordant"] == 2
    assert sum(run["distance_hist"]["counts"]) == 1

    assert _names(out_bam) == ["B", "C"]
    with pysam.AlignmentFile(str(out_bam), "rb") as f, pysam.AlignmentFile(str(toy_bam), "rb") as src:
        assert f.references == src.references
        assert f.lengths == src.lengths


def test_larger_threshold_makes_long_range_concordant(toy_bam: Path, tmp_path: Path):
    run, lines = _scan(toy_bam, tmp_path / "links.bam", max_distance=20_000)
    assert run["counts"]["long_range"] == 0
    assert run["counts"]["inter_chromosomal"] == 1
    assert "Long-range pairs (> 20000 bp): 0" in lines
    assert not any("LONGRANGE" in line for line in lines)


def test_summary_only(toy_bam: Path, tmp_path: Path):
    full, _ = _scan(toy_bam, tmp_path / "full.bam")
    out_bam = tmp_path / "quiet.bam"
    quiet, lines = _scan(toy_bam, out_bam, summary_only=True)

    assert quiet["counts"]["inter_chromosomal"] == full["counts"]["inter_chromosomal"]
    assert quiet["counts"]["long_range"] == full["counts"]["long_range"]
    assert quiet["counts"]["reads_written"] == 0
    assert not any("\t" in line for line in lines)
    assert lines[-1] == "Total discordant pairs: 2"
    assert _names(out_bam) == []


def test_filters_applied_end_to_end(tmp_path: Path):
    reads = []
    reads += make_pair("dup", (0, 100), (1, 100), extra_flags=0x400)
    reads += make_pair("lowq", (0, 200), (2, 200), mapq=5)
    reads += make_pair("sec", (0, 300), (1, 300), extra_flags=0x100)
    reads += make_pair("ok", (0, 400), (0, 40_000))
    bam = write_sorted_bam(tmp_path / "in.bam", reads)

    run, lines = _scan(bam, tmp_path / "out.bam", min_mapping_quality=20, exclude_duplicates=True)
    assert run["counts"]["inter_chromosomal"] == 0
    assert run["counts"]["long_range"] == 1
    assert lines[0] == "ok\tchr1:400\tchr1:40000\tLONGRANGE"

    run, _ = _scan(bam, tmp_path / "out2.bam")
    # duplicates and low MAPQ are kept by default; secondary never is
    assert run["counts"]["inter_chromosomal"] == 2


def test_first_mate_in_file_order_is_reported(tmp_path: Path):
    reads = make_pair("frag", (1, 5_000), (0, 9_000))
    bam = write_sorted_bam(tmp_path / "in.bam", reads)

    _, lines = _scan(bam, tmp_path / "out.bam")
    # chr1 sorts before chr2, so the second mate comes first
    assert lines[0] == "frag\tchr1:9000\tchr2:5000\tINTERCHR"


def test_missing_index_is_source_error(tmp_path: Path):
    bam = tmp_path / "noindex.bam"
    header = {"HD": {"VN": "1.6"}, "SQ": [{"SN": "chr1", "LN": 1000}]}
    with pysam.AlignmentFile(str(bam), "wb", header=header):
        pass

    with pytest.raises(SourceError):
        _scan(bam, tmp_path / "out.bam")


def test_missing_input_is_source_error(tmp_path: Path):
    with pytest.raises(SourceError):
        _scan(tmp_path / "absent.bam", tmp_path / "out.bam")


def test_unwritable_output_is_sink_error(toy_bam: Path, tmp_path: Path):
    with pytest.raises(SinkError):
        _scan(toy_bam, tmp_path / "no" / "such" / "dir" / "out.bam")


def test_invalid_config_rejected(toy_bam: Path, tmp_path: Path):
    with pytest.raises(ValueError):
        _scan(toy_bam, tmp_path / "out.bam", max_distance=-5)


def _corrupt_middle(path: Path, nbytes: int = 200) -> None:
    data = bytearray(path.read_bytes())
    mid = len(data) // 2
    data[mid : mid + nbytes] = bytes(nbytes)
    path.write_bytes(bytes(data))


def test_corrupted_block_raises_record_error(tmp_path: Path):
    rng = random.Random(3)
    reads = []
    for i in range(3_000):
        seq = "".join(rng.choice("ACGT") for _ in range(50))
        reads += make_pair(f"p{i}", (0, i * 10), (1, i * 10), seq=seq)
    bam = write_sorted_bam(tmp_path / "in.bam", reads)
    _corrupt_middle(bam)

    buf = io.StringIO()
    config = ScanConfig(input_path=str(bam), output_path=str(tmp_path / "out.bam"))
    with pytest.raises(RecordError):
        scan_bam(config, out=buf, progress=False)
    assert "SUMMARY" not in buf.getvalue()


class _BrokenHandle:
    def write(self, read):
        raise OSError(28, "No space left on device")

    def close(self):
        raise OSError(5, "Input/output error")


def test_close_failure_does_not_mask_earlier_error(monkeypatch):
    monkeypatch.setattr(bamio, "open_source", lambda path: _BrokenHandle())
    with pytest.raises(RecordError):
        with bamio.source_file("in.bam"):
            raise RecordError("bad record")


def test_close_failure_alone_is_source_error(monkeypatch):
    monkeypatch.setattr(bamio, "open_source", lambda path: _BrokenHandle())
    with pytest.raises(SourceError):
        with bamio.source_file("in.bam"):
            pass


def test_write_failure_is_sink_error(toy_bam: Path, tmp_path: Path, monkeypatch):
    @contextmanager
    def full_disk(path, template):
        yield _BrokenHandle()

    monkeypatch.setattr(scanner, "sink_file", full_disk)

    buf = io.StringIO()
    config = ScanConfig(input_path=str(toy_bam), output_path=str(tmp_path / "out.bam"))
    with pytest.raises(SinkError):
        scan_bam(config, out=buf, progress=False)
    assert "SUMMARY" not in buf.getvalue()
