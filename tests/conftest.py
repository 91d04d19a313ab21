"""Shared fixtures for jira_core and jira_mcp tests."""
import httpx
import pytest

from jira_core.cache import CacheStore
from jira_core.client import JiraClient
from jira_core.config import Settings
from jira_core.invalidation import CacheInvalidator
from jira_mcp.dispatcher import ToolDispatcher

JIRA_URL = "https://jira.test"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        jira_url=JIRA_URL,
        jira_token="test-token",
        jira_max_results=50,
    )


@pytest.fixture
def cache(clock: FakeClock) -> CacheStore:
    return CacheStore(default_ttl=300, max_items=100, clock=clock)


@pytest.fixture
def invalidator(cache: CacheStore) -> CacheInvalidator:
    return CacheInvalidator(cache)


@pytest.fixture
async def http():
    async with httpx.AsyncClient(base_url=JIRA_URL) as client:
        yield client


@pytest.fixture
def client(http, cache: CacheStore, settings: Settings, invalidator: CacheInvalidator) -> JiraClient:
    return JiraClient(http, cache, settings, invalidator)


@pytest.fixture
def dispatcher(client: JiraClient, cache: CacheStore, settings: Settings, invalidator: CacheInvalidator) -> ToolDispatcher:
    return ToolDispatcher(client, cache, settings, invalidator)
