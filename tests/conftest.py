from pathlib import Path

import pytest

from bamlinks.toy_data import make_toy_data


@pytest.fixture
def toy_bam(tmp_path: Path) -> Path:
    """Indexed BAM holding fragments A (concordant), B (inter-chr) and C (15 kb apart)."""
    return Path(make_toy_data(outdir=tmp_path / "toy")["toy_bam"])
