import sys
from pathlib import Path
import pytest

# Ensure we can import modules from src/ at collection time
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture()
def sandbox(tmp_path, monkeypatch):
    # Work in an isolated temp directory so redirections land there
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture()
def session(sandbox):
    from ops import ShellSession
    return ShellSession()
