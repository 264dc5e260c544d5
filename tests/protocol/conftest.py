import pytest

from fbrconpy.protocol import RCONClientProtocol, RCONServerProtocol


@pytest.fixture
def client() -> RCONClientProtocol:
    return RCONClientProtocol()


@pytest.fixture
def server() -> RCONServerProtocol:
    return RCONServerProtocol()
