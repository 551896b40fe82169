import pytest

from kickauth.options import KickAuthenticationOptions


@pytest.fixture
def kick_options() -> KickAuthenticationOptions:
    options = KickAuthenticationOptions()
    options.client_id = "test_client_id"
    options.client_secret = "test_client_secret"
    return options


@pytest.fixture
def kick_configuration(kick_options):
    return kick_options.freeze()
