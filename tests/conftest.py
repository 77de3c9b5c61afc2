import pytest


@pytest.fixture
def integration_hass(hass, enable_custom_integrations):
    """hass with custom_components/ loading enabled."""
    return hass
