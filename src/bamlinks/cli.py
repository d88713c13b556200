from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, Optional

from . import __version__
from .bamio import BamLinksError
from .models import ScanConfig
from .plotting import plot_category_counts, plot_distance_hist
from .report import render_report
from .scanner import scan_bam
from .toy_data import make_toy_data
from .utils import ensure_outdir, write_json


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _path_exists(p: str) -> str:
    if not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _non_negative_int(v: str) -> int:
    n = int(v)
    if n < 0:
        raise argparse.ArgumentTypeError(f"Expected a non-negative integer, got {v}")
    return n


def _mapq(v: str) -> int:
    n = int(v)
    if not 0 <= n <= 255:
        raise argparse.ArgumentTypeError(f"MAPQ must be within 0..255, got {v}")
    return n


def _handle_error(err: Exception, *, log_path: Optional[Path] = None) -> int:
    sys.stderr.write(f"{err.__class__.__name__}: {err}\n")
    if log_path is not None:
        sys.stderr.write(f"See log: {log_path}\n")
    return 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bamlinks",
        description=(
            "bamlinks: detect inter-chromosomal or long-range paired-end links "
            "in a sorted, indexed BAM."
        ),
    )
    p.add_argument("--version", action="version", version=f"bamlinks {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # quickstart
    # -----------------
    sub.add_parser(
        "quickstart",
        help="Print ready-to-run recipes for common scenarios.",
    )

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate a tiny indexed paired-end BAM for demos/tests.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")

    # -----------------
    # scan
    # -----------------
    s = sub.add_parser(
        "scan",
        help="Report read pairs whose mates map to different contigs or lie far apart.",
    )
    s.add_argument("-b", "--bam", required=True, type=_path_exists, help="Input BAM (sorted, indexed).")
    s.add_argument("-o", "--out", required=True, help="Output BAM receiving discordant records.")
    s.add_argument(
        "-m",
        "--max-dist",
        type=_non_negative_int,
        default=10_000,
        help="Distance threshold (bp) for same-contig links (default: 10000).",
    )
    s.add_argument("--min-mapq", type=_mapq, default=0, help="Minimum mapping quality (default: 0).")
    s.add_argument("--no-dups", action="store_true", help="Ignore reads flagged as duplicates.")
    s.add_argument(
        "--summary-only",
        action="store_true",
        help="Print only the summary; no per-pair lines and no records written.",
    )
    s.add_argument(
        "--report-dir",
        default=None,
        help="Optional directory for summary.json, plots and report.html.",
    )
    s.add_argument("--no-progress", action="store_true", help="Disable the progress indicator.")
    s.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    return p


# -----------------
# commands
# -----------------

def cmd_quickstart() -> int:
    lines = [
        "bamlinks quickstart (copy/paste):",
        "",
        "1) Report every discordant pair:",
        "   bamlinks scan \\",
        "     --bam sample.sorted.bam \\",
        "     --out discordant.bam",
        "",
        "2) Counts only, high-confidence primary alignments, 50 kb threshold:",
        "   bamlinks scan \\",
        "     --bam sample.sorted.bam \\",
        "     --out discordant.bam \\",
        "     --max-dist 50000 --min-mapq 30 --no-dups --summary-only",
        "",
        "3) With an HTML report:",
        "   bamlinks scan --bam sample.sorted.bam --out discordant.bam --report-dir results/",
        "   Outputs: results/report.html, results/summary.json",
        "",
        "Tip: try it first on `bamlinks make-toy-data --outdir toy/`.",
    ]
    print("\n".join(lines))
    return 0


def cmd_make_toy_data(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        return 0

    summary = make_toy_data(outdir=outdir)
    print(json.dumps(summary, indent=2))
    return 0


def _write_report_dir(report_dir: Path, run: Dict[str, object]) -> Path:
    write_json(report_dir / "summary.json", run)

    plots_dir = report_dir / "plots"
    category_png = plots_dir / "category_counts.png"
    distance_png = plots_dir / "distance_hist.png"

    plot_category_counts(
        counts=run["counts"],  # type: ignore[arg-type]
        max_distance=int(run["max_distance"]),  # type: ignore[arg-type]
        out_png=category_png,
    )
    plot_distance_hist(
        bin_edges=run["distance_hist"]["bin_edges"],  # type: ignore[index]
        counts=run["distance_hist"]["counts"],  # type: ignore[index]
        out_png=distance_png,
    )

    plots_rel = {
        "category_counts": str(Path("plots") / category_png.name),
        "distance_hist": str(Path("plots") / distance_png.name),
    }
    return render_report(outdir=report_dir, version=__version__, run=run, plots=plots_rel)


def cmd_scan(args: argparse.Namespace) -> int:
    report_dir: Optional[Path] = None
    log_path: Optional[Path] = None
    if args.report_dir is not None:
        report_dir = ensure_outdir(Path(args.report_dir).expanduser().resolve())
        log_path = report_dir / "logs" / "scan.log"
    _setup_logging(args.verbose, logfile=log_path)

    logger = logging.getLogger("bamlinks")
    logger.info("bamlinks %s", __version__)

    config = ScanConfig(
        input_path=args.bam,
        output_path=args.out,
        max_distance=int(args.max_dist),
        min_mapping_quality=int(args.min_mapq),
        exclude_duplicates=bool(args.no_dups),
        summary_only=bool(args.summary_only),
    )

    try:
        run = scan_bam(config, progress=not bool(args.no_progress))
        if report_dir is not None:
            _write_report_dir(report_dir, run)
        return 0
    except (BamLinksError, ValueError, OSError) as e:
        return _handle_error(e, log_path=log_path)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "quickstart":
        return cmd_quickstart()
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)
    if args.cmd == "scan":
        return cmd_scan(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
