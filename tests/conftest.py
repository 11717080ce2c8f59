import sys
from pathlib import Path

import pytest

# Ensure 'src' is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from deploystore import (  # noqa: E402
    AUTHORING,
    DiagnosticLog,
    HostEnvironment,
    LogConfig,
    ObjectStore,
    StoreConfig,
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    for var in (
        "DEPLOYSTORE_MODE",
        "DEPLOYSTORE_PROJECT_ROOT",
        "DEPLOYSTORE_DATA_DIR",
        "DEPLOYSTORE_PREFIX",
        "DEPLOYSTORE_CONSOLE_LOG",
        "DEPLOYSTORE_FILE_LOG",
        "DEPLOYSTORE_LOG_LEVEL",
        "DEPLOYSTORE_ECHO_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture()
def project_root(tmp_path: Path) -> Path:
    d = tmp_path / "project"
    d.mkdir()
    return d


@pytest.fixture()
def data_root(tmp_path: Path) -> Path:
    return tmp_path / "userdata"


@pytest.fixture()
def make_store(project_root: Path, data_root: Path):
    """Build an ObjectStore over the shared project/data roots in a given mode."""
    created = []

    def factory(mode: str = AUTHORING, config: StoreConfig = None, **kwargs) -> ObjectStore:
        config = config or StoreConfig()
        env = HostEnvironment(config, mode=mode, project_root=project_root, data_root=data_root)
        log = kwargs.pop("log", None) or DiagnosticLog(env.log_path(), LogConfig(console_enabled=False))
        store = ObjectStore(config, environment=env, log=log, **kwargs)
        created.append(store)
        return store

    yield factory
    for store in created:
        store.close()
