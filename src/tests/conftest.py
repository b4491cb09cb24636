"""
Shared test fixtures for Quire.
"""
import pytest

from quire.services.blog import BlogService
from quire.services.cache import CacheCoordinator, MemoryCacheBackend
from quire.services.markdown import MarkdownRenderer
from tests.fixtures.fakes import FakeContentRepository, FakeUserRepository


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend(clock: FakeClock) -> MemoryCacheBackend:
    return MemoryCacheBackend(clock=clock)


@pytest.fixture
def cache(backend: MemoryCacheBackend) -> CacheCoordinator:
    return CacheCoordinator(backend, default_ttl=60.0)


@pytest.fixture(scope="session")
def renderer() -> MarkdownRenderer:
    """One parser for the whole session, as at runtime."""
    return MarkdownRenderer()


@pytest.fixture
def users() -> FakeUserRepository:
    return FakeUserRepository()


@pytest.fixture
def repo(users: FakeUserRepository) -> FakeContentRepository:
    return FakeContentRepository(users)


@pytest.fixture
def service(
    repo: FakeContentRepository,
    users: FakeUserRepository,
    cache: CacheCoordinator,
    renderer: MarkdownRenderer,
) -> BlogService:
    return BlogService(repo, users, cache, renderer)


@pytest.fixture
def alice(users: FakeUserRepository):
    return users.add("alice@example.com", "alice-password")


@pytest.fixture
def bob(users: FakeUserRepository):
    return users.add("bob@example.com", "bob-password")
