"""Shared pytest fixtures for urdigest tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402

from helpers import RecordingSender, StaticResolver  # noqa: E402
from urdigest.domain.dedup import InMemoryDeduplicator  # noqa: E402
from urdigest.domain.onboarding import OnboardingStateMachine  # noqa: E402
from urdigest.infra.memory_store import InMemoryPostStore, InMemoryUserStore  # noqa: E402
from urdigest.instagram.dispatcher import WebhookDispatcher  # noqa: E402


@pytest.fixture
def users():
    return InMemoryUserStore()


@pytest.fixture
def posts():
    return InMemoryPostStore()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def resolver():
    return StaticResolver()


@pytest.fixture
def machine(users, posts, sender, resolver):
    return OnboardingStateMachine(users, posts, sender, username_resolver=resolver)


@pytest.fixture
def dispatcher(machine):
    return WebhookDispatcher(machine, InMemoryDeduplicator())


@pytest.fixture(autouse=True)
def _reset_route_singletons():
    """Drop lazily built route collaborators so tests never share them."""
    import urdigest.api.routes.tasks_enrichment as tasks_module
    import urdigest.api.routes.webhooks_instagram as webhook_module

    webhook_module._dispatcher = None
    tasks_module._enricher = None
    yield
    webhook_module._dispatcher = None
    tasks_module._enricher = None
