"""Shared pytest fixtures for confstore tests."""

import pytest

from confstore.database.postgres import PostgresClient, PostgresConfig
from confstore.logger.logger import init_logger
from confstore.logger.types import Level
from confstore.repository.config_repository import ConfigRepository
from confstore.serialization.streaming import StreamingSerializer
from confstore.services.registry import reset_registry
from confstore.services.store import ConfigStore
from tests.fakes import FakeDatabase, FakePool


@pytest.fixture(autouse=True)
def quiet_logger():
    """Only warnings and above reach stdout during tests."""
    init_logger("confstore-test", "test", level=Level.WARN)
    yield
    reset_registry()


@pytest.fixture
def database():
    """Empty in-memory database."""
    return FakeDatabase()


@pytest.fixture
def postgres_client(database):
    """PostgresClient backed by the in-memory pool."""
    client = PostgresClient(PostgresConfig(password="test"))
    client.pool = FakePool(database)
    yield client
    client.close()


@pytest.fixture
def pool(postgres_client):
    return postgres_client.pool


@pytest.fixture
def serializer():
    """Serializer with a small pipe so ordinary payloads exceed it."""
    s = StreamingSerializer(pipe_capacity=1024, max_workers=4)
    yield s
    s.shutdown()


@pytest.fixture
def repository(postgres_client):
    repo = ConfigRepository(postgres_client, copy_chunk_size=256)
    repo.ensure_table_exists()
    return repo


@pytest.fixture
def store(repository, serializer):
    return ConfigStore(repository, serializer)
