import pytest

from srm_calendar_export.config import PortalConfig


@pytest.fixture
def config():
    """Portal config with the login delays switched off."""
    return PortalConfig(step_delay=(0.0, 0.0))
