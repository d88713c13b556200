"""bamlinks: detect inter-chromosomal and long-range paired-end links in a BAM.

Public API is intentionally small; most users should use the CLI:

    bamlinks scan --bam ... --out ...

"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
