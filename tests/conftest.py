import sys
from pathlib import Path

import pytest

# Ensure 'src' is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))


@pytest.fixture(autouse=True)
def isolated_output_dir(tmp_path: Path, monkeypatch) -> Path:
    """Keep generated scripts out of the real user data directory."""
    out = tmp_path / "scripts"
    monkeypatch.setenv("TABLESAVE_OUTPUT_DIR", str(out))
    return out
