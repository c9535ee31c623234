"""
Hotbar kernel test configuration.

Everything runs against MemoryStorage and MemoryHost. PostgresStorage tests
that need DATABASE_URL are skipped automatically when it's not set.
"""

import pytest

from hotbar.kernel.adapters import MemoryHost
from hotbar.kernel.channel import MemoryNotifier
from hotbar.kernel.coordinator import InteractionCoordinator
from hotbar.kernel.storage import MemoryStorage
from hotbar.kernel.store import HotbarStore
from hotbar.kernel.tests.factories import OWNER_ID, FakeClock
from hotbar.kernel.types import OwnerHandle


@pytest.fixture
def owner():
    return OwnerHandle(id=OWNER_ID, name="Valeros")


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(storage, owner, clock):
    s = HotbarStore(storage, echo_window=0.5, clock=clock)
    s.bind_owner(owner)
    return s


@pytest.fixture
def host(owner):
    return MemoryHost(owner)


@pytest.fixture
def notifier():
    return MemoryNotifier()


@pytest.fixture
def coordinator(store, host, notifier):
    return InteractionCoordinator(store, host, notifier=notifier)
