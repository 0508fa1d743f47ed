"""
Shared fixtures for the scheduler tests.
"""

from datetime import time
from itertools import count

import pendulum
import pytest

from agendaguard.adapters.storage import MemoryStore, StateRepository
from agendaguard.domain.models import Consultant, Role, User
from agendaguard.domain.state import SchedulerState
from agendaguard.services.ledger import BookingLedger
from agendaguard.services.mirror import ExternalEventMirror

TZ = "America/Sao_Paulo"


def at(text: str) -> pendulum.DateTime:
    """Parse a local timestamp in the test timezone."""
    return pendulum.parse(text, tz=TZ)


@pytest.fixture
def consultants():
    return [
        Consultant(
            id="c1",
            name="Alex Silva",
            email="alex@trainer.com",
            work_start=time(8, 0),
            work_end=time(17, 0),
            work_days=frozenset({0, 1, 2, 3, 4}),
        ),
        Consultant(
            id="c2",
            name="Beatriz Costa",
            email="beatriz@trainer.com",
            work_start=time(8, 0),
            work_end=time(18, 0),
            work_days=frozenset({0, 1, 2, 3, 4}),
        ),
    ]


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def repository(store):
    return StateRepository(store)


@pytest.fixture
def state(repository, consultants):
    return repository.load(consultants)


@pytest.fixture
def mirror(state, repository):
    return ExternalEventMirror(state, repository)


@pytest.fixture
def ledger(state, repository, mirror):
    ids = count(1)
    return BookingLedger(state, repository, mirror, id_factory=lambda: f"a{next(ids)}")


@pytest.fixture
def admin():
    return User(id="u-admin", name="Ana Admin", email="admin@example.com", role=Role.ADMIN)


@pytest.fixture
def trainer():
    return User(
        id="u-alex",
        name="Alex Silva",
        email="alex@trainer.com",
        role=Role.TRAINER,
        consultant_id="c1",
    )


@pytest.fixture
def sales():
    return User(id="u-sales", name="Sam Sales", email="sales@example.com", role=Role.SALES)


def add_users(state: SchedulerState, *users: User) -> None:
    state.users = state.users + list(users)
