"""Shared test fixtures."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from config.settings import Settings
from src.amm_common.collateral import DEFAULT_LP
from src.amm_common.datetime_utils import FakeClock
from src.amm_common.enums import ResultType
from src.amm_common.wei import ONE
from src.amm_trading.application.service import AmmService, get_amm_service

T0 = 1_700_000_000


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(T0)


@pytest.fixture
def service(clock: FakeClock) -> AmmService:
    """Service on default settings: moneyline (type 0) results typed, default LP holds 10k."""
    svc = AmmService(cfg=Settings(), clock=clock)
    svc.results.set_result_types_per_market_types([0], [ResultType.EXACT_POSITION])
    svc.collateral.mint(DEFAULT_LP, 10_000 * ONE)
    return svc


@pytest.fixture
async def client(service: AmmService) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for the FastAPI app, wired to the fixture service."""
    from src.main import app

    app.dependency_overrides[get_amm_service] = lambda: service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
