import os
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Set test database URL before importing app
os.environ["DATABASE_URL"] = TEST_DATABASE_URL


@pytest_asyncio.fixture
async def repos():
    """SQL repositories over a fresh in-memory database."""
    from turngate_ai.agent_core.repos.sql import build_sql_repos, create_all, create_engine, create_sessionmaker

    engine = create_engine(TEST_DATABASE_URL)
    await create_all(engine)

    yield build_sql_repos(session_factory=create_sessionmaker(engine))

    await engine.dispose()


@pytest.fixture
def tool_prices() -> dict:
    return {}


@pytest.fixture
def credit_balance() -> float:
    return 0.0


@pytest.fixture
def orchestrator(repos, scripted_provider, tool_prices, credit_balance):
    """Orchestrator with the built-in tools and a scripted model provider."""
    from turngate_ai.agent_core.credits import PricedCreditGate, StaticBalanceProvider
    from turngate_ai.agent_core.runtime import AgentEngine, EngineConfig, EngineDeps
    from turngate_ai.agent_core.tools import RegistryToolExecutor, SchemaParameterValidator
    from turngate_ai.server.services.orchestrator import OrchestratorService

    service = OrchestratorService(repos=repos)
    service.engine = AgentEngine(
        deps=EngineDeps(
            conversations=repos.conversations,
            messages=repos.messages,
            registry=service.registry,
            validator=SchemaParameterValidator(service.registry),
            executor=RegistryToolExecutor(service.registry),
            credits=PricedCreditGate(tool_prices, StaticBalanceProvider(default=credit_balance)),
            provider=scripted_provider,
        ),
        config=EngineConfig(stream_throttle_ms=0),
    )
    return service


@pytest.fixture
def sse_request() -> AsyncMock:
    """A connected client request for calling streaming endpoints directly."""
    request = AsyncMock()
    request.is_disconnected.return_value = False
    return request


@pytest_asyncio.fixture(name="client")
async def client_fixture(orchestrator) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client with the orchestrator dependency overridden."""
    from turngate_ai.server.main import app
    from turngate_ai.server.services.orchestrator import get_orchestrator

    app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
        yield client

    app.dependency_overrides.clear()
