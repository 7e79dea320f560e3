import pytest
from httpx import AsyncClient, ASGITransport

from relay.main import create_api
from relay.realtime.socket import SocketHandlers
from relay.realtime.state import RelayState

from tests.fakes import FakeEmitter, FakeValidator, DRIVER, CUSTOMER, make_settings


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def emitter():
    return FakeEmitter()


@pytest.fixture
def validator():
    return FakeValidator({"driver-token": DRIVER, "customer-token": CUSTOMER})


@pytest.fixture
def state(settings, emitter, validator):
    return RelayState(settings, emitter, validator=validator)


@pytest.fixture
def handlers(state):
    return SocketHandlers(state)


@pytest.fixture
async def client(state):
    api = create_api(state)
    async with AsyncClient(transport=ASGITransport(app=api), base_url="http://test") as ac:
        yield ac
