"""End-to-end tests for SQL repositories using Testcontainers PostgreSQL.

Exercises the parts that differ between dialects: JSONB columns, the
conditional UPDATE behind ``claim`` under real concurrency, and URL
normalization to asyncpg.
"""

import asyncio

import pytest
from testcontainers.postgres import PostgresContainer

from turngate_ai.agent_core.repos.sql import (
    SqlRepoBundle,
    build_sql_repos,
    create_all,
    create_engine,
    create_sessionmaker,
)
from turngate_ai.agent_core.schemas.domain import Conversation, Message, MessageRole, ToolCall

pytestmark = pytest.mark.e2e


@pytest.fixture(scope="session")
def postgres_container():
    """Start a PostgreSQL container for the test session."""
    container = PostgresContainer("postgres:16-alpine")
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f"Docker is not available: {exc}")
    yield container
    container.stop()


@pytest.fixture
async def db_engine(postgres_container):
    """Create a database engine connected to the test PostgreSQL container."""
    # get_connection_url() names the psycopg2 driver; create_engine rewrites it.
    engine = create_engine(postgres_container.get_connection_url())
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def repos(db_engine) -> SqlRepoBundle:
    """Create repository bundle with test PostgreSQL database."""
    session_factory = create_sessionmaker(db_engine)
    return build_sql_repos(session_factory=session_factory)


class TestConversationRepositoryPostgres:
    @pytest.mark.asyncio
    async def test_context_round_trips_through_jsonb(self, repos: SqlRepoBundle) -> None:
        context = {"nested": {"list": [1, "two", None]}, "unicode": "日本語"}
        conv = Conversation(user_id="u", context=context)
        await repos.conversations.create(conv)

        fetched = await repos.conversations.get(conv.id)

        assert fetched.context == context
        assert fetched.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_concurrent_claims_have_one_winner(self, repos: SqlRepoBundle) -> None:
        conv = Conversation(user_id="u")
        await repos.conversations.create(conv)

        results = await asyncio.gather(
            *(repos.conversations.claim(conv.id, expected_version=0) for _ in range(5))
        )

        assert sorted(results) == [False, False, False, False, True]
        assert (await repos.conversations.get(conv.id)).version == 1


class TestMessageRepositoryPostgres:
    @pytest.mark.asyncio
    async def test_tool_call_patch_is_persisted(self, repos: SqlRepoBundle) -> None:
        conv = Conversation(user_id="u")
        await repos.conversations.create(conv)
        msg = await repos.messages.append(
            Message(
                conversation_id=conv.id,
                role=MessageRole.assistant,
                tool_calls=[ToolCall(id="a", name="create_note", arguments='{"title": "old"}')],
            )
        )

        await repos.messages.update_tool_call_arguments(msg.id, "a", arguments='{"title": "new"}')

        (stored,) = await repos.messages.list(conv.id)
        assert stored.tool_calls[0].arguments == '{"title": "new"}'
        assert stored.position == 0
