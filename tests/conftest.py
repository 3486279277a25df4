import pytest

from apitest.config import Settings, set_settings


@pytest.fixture(autouse=True)
def default_settings(tmp_path):
    """Every test starts from the default settings, whatever the environment."""
    settings = Settings(log_path=str(tmp_path / "server.log"))
    set_settings(settings)
    yield settings
    set_settings(None)
