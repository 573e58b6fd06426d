"""Unit tests for DatabaseClient against a mocked engine."""

from contextlib import asynccontextmanager

import pytest
from unittest.mock import AsyncMock, MagicMock

from quote_routing.database.client import DatabaseClient


def mock_engine(connection):
    engine = MagicMock()
    engine.dispose = AsyncMock()

    @asynccontextmanager
    async def connect():
        yield connection

    engine.connect = connect
    return engine


@pytest.fixture
def connection():
    conn = MagicMock()
    conn.execute = AsyncMock()
    conn.commit = AsyncMock()
    return conn


@pytest.mark.asyncio
async def test_connect_marks_client_connected(connection):
    client = DatabaseClient(mock_engine(connection))

    assert await client.connect() is True
    assert client.is_connected
    connection.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_connect_failure_propagates(connection):
    connection.execute.side_effect = ConnectionRefusedError("no server")
    client = DatabaseClient(mock_engine(connection))

    with pytest.raises(ConnectionRefusedError):
        await client.connect()
    assert not client.is_connected


@pytest.mark.asyncio
async def test_disconnect_disposes_pool(connection):
    engine = mock_engine(connection)
    client = DatabaseClient(engine)
    await client.connect()

    await client.disconnect()

    engine.dispose.assert_awaited_once()
    assert not client.is_connected
