import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from gapp.app import init_app
from gapp.router import Router
from tests.helpers import RecordingService, hello


@pytest.fixture
def service() -> RecordingService:
    return RecordingService()


@pytest_asyncio.fixture
async def client(service: RecordingService) -> AsyncClient:
    _, app = init_app(service)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


@pytest.fixture
def router() -> Router:
    router = Router()
    router.add_route("/hello", hello)
    return router
