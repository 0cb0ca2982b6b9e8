from pathlib import Path
import pytest

from datadeck.analysis.columns import analyze_columns
from datadeck.dashboard.model import Dataset
from datadeck.dashboard.service import Workspace
from datadeck.io.storage import MemoryStore

@pytest.fixture(scope="session")
def project_root() -> Path:
    return Path(__file__).resolve().parents[1]

@pytest.fixture(scope="session")
def cfg_path(project_root: Path) -> Path:
    return project_root / "config" / "config.toml"

@pytest.fixture(scope="session")
def cfg(cfg_path: Path):
    from datadeck.config_model.model import load_config
    return load_config(str(cfg_path))

@pytest.fixture
def tmp_out(tmp_path: Path) -> Path:
    d = tmp_path / "out"
    d.mkdir(parents=True, exist_ok=True)
    return d

@pytest.fixture
def make_dataset():
    """Build an analyzed Dataset from rows; columns default to the first row's keys."""
    counter = {"n": 0}

    def _make(rows, columns=None, *, id=None, file_name=None, created_at=None):
        counter["n"] += 1
        cols = list(columns) if columns is not None else (list(rows[0].keys()) if rows else [])
        return Dataset(
            id=id or f"ds-{counter['n']}",
            file_name=file_name or f"file-{counter['n']}.csv",
            data=rows,
            columns=cols,
            analysis=analyze_columns(rows, cols),
            created_at=created_at if created_at is not None else 1_700_000_000_000 + counter["n"],
        )
    return _make

@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()

@pytest.fixture
def ws(store: MemoryStore) -> Workspace:
    return Workspace(store).load()

@pytest.fixture
def sales_csv() -> bytes:
    return (
        b"region,sales,profit\n"
        b"North,100,10\n"
        b"South,200,20\n"
        b"North,50,5\n"
    )
