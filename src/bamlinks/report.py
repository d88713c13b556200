from __future__ import annotations

import datetime as _dt
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

import pysam
from jinja2 import Template

from .bamio import RecordError
from .models import LONGRANGE, DiscordantLink

logger = logging.getLogger(__name__)


def reference_name(references: Sequence[str], tid: int) -> str:
    """Resolve a reference index against the header's name table."""
    if tid < 0 or tid >= len(references):
        raise RecordError(f"Reference index {tid} is not in the header ({len(references)} sequences)")
    return references[tid]


def build_link(
    read: pysam.AlignedSegment, category: str, references: Sequence[str]
) -> DiscordantLink:
    pos = int(read.reference_start)
    mate_pos = int(read.next_reference_start)
    return DiscordantLink(
        qname=str(read.query_name),
        chrom=reference_name(references, int(read.reference_id)),
        pos=pos,
        mate_chrom=reference_name(references, int(read.next_reference_id)),
        mate_pos=mate_pos,
        category=category,
        distance=abs(pos - mate_pos) if category == LONGRANGE else None,
    )


def format_link_line(link: DiscordantLink) -> str:
    return f"{link.qname}\t{link.chrom}:{link.pos}\t{link.mate_chrom}:{link.mate_pos}\t{link.category}"


def format_summary(inter_count: int, long_count: int, max_distance: int) -> List[str]:
    return [
        "",
        "===== SUMMARY =====",
        f"Inter-chromosomal pairs: {inter_count}",
        f"Long-range pairs (> {max_distance} bp): {long_count}",
        f"Total discordant pairs: {inter_count + long_count}",
    ]


_REPORT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>bamlinks Report</title>
  <style>
    body { font-family: Arial, Helvetica, sans-serif; margin: 24px; }
    code, pre { background: #f6f8fa; padding: 2px 4px; border-radius: 4px; }
    h1, h2, h3 { margin-top: 1.2em; }
    table { border-collapse: collapse; margin-top: 0.6em; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    th { background: #f2f2f2; text-align: left; }
    .grid { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }
    .card { border: 1px solid #ddd; border-radius: 8px; padding: 12px; }
    .small { color: #666; font-size: 0.9em; }
    img { max-width: 100%; height: auto; border: 1px solid #eee; border-radius: 6px; }
  </style>
</head>
<body>

<h1>bamlinks Report</h1>
<p class="small">Generated: {{ generated_at }}</p>

<h2>Run summary</h2>
<div class="grid">
  <div class="card">
    <h3>Inputs</h3>
    <table>
      <tr><th>Input</th><td><code>{{ input_path }}</code></td></tr>
      <tr><th>Output</th><td><code>{{ output_path }}</code></td></tr>
    </table>
  </div>
  <div class="card">
    <h3>Filters</h3>
    <table>
      <tr><th>Max distance (bp)</th><td>{{ max_distance }}</td></tr>
      <tr><th>Min MAPQ</th><td>{{ min_mapping_quality }}</td></tr>
      <tr><th>Exclude duplicates</th><td>{{ exclude_duplicates }}</td></tr>
      <tr><th>Summary only</th><td>{{ summary_only }}</td></tr>
    </table>
  </div>
</div>

<h2>Discordant pairs</h2>
<table>
  <tr><th>Records processed</th><td>{{ counts.reads_total }}</td></tr>
  <tr><th>Records written</th><td>{{ counts.reads_written }}</td></tr>
  <tr><th>Inter-chromosomal</th><td>{{ counts.inter_chromosomal }}</td></tr>
  <tr><th>Long-range (&gt; {{ max_distance }} bp)</th><td>{{ counts.long_range }}</td></tr>
  <tr><th>Total</th><td>{{ counts.total_discordant }}</td></tr>
</table>

<h2>Plots</h2>
<div class="grid">
  <div class="card">
    <h3>Categories</h3>
    <img src="{{ plots.category_counts }}" alt="category counts">
  </div>
  <div class="card">
    <h3>Long-range mate distance</h3>
    <img src="{{ plots.distance_hist }}" alt="distance histogram">
  </div>
</div>

<h2>Outputs</h2>
<ul>
  {% if not summary_only %}
  <li><code>{{ output_path }}</code> (discordant records, one per fragment)</li>
  {% endif %}
  <li><code>summary.json</code> (machine-readable summary)</li>
</ul>

<h2>Interpretation notes</h2>
<ul>
  <li>Each fragment is reported once, using the first mate encountered in file order.</li>
  <li>Positions are 0-based leftmost coordinates as stored in the alignment file.</li>
</ul>

<hr>
<p class="small">bamlinks {{ version }}</p>
</body>
</html>"""
)


def render_report(
    *,
    outdir: str | Path,
    version: str,
    run: Dict[str, Any],
    plots: Dict[str, str],
) -> Path:
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    html = _REPORT_TEMPLATE.render(
        generated_at=_dt.datetime.now().isoformat(timespec="seconds"),
        version=version,
        input_path=run.get("input_path"),
        output_path=run.get("output_path"),
        max_distance=run.get("max_distance"),
        min_mapping_quality=run.get("min_mapping_quality"),
        exclude_duplicates=run.get("exclude_duplicates"),
        summary_only=run.get("summary_only"),
        counts=run.get("counts", {}),
        plots=plots,
    )

    out_path = outdir / "report.html"
    out_path.write_text(html, encoding="utf-8")
    logger.info("Report written: %s", out_path)
    return out_path
