import pytest

from treesync.config import Config


@pytest.fixture(autouse=True)
def default_config(monkeypatch, tmp_path):
    """Every test starts from the built-in defaults, whatever config.yaml says."""
    monkeypatch.setenv("TREESYNC_CONFIG", str(tmp_path / "missing.yaml"))
    Config.reset_instance()
    yield
    Config.reset_instance()
