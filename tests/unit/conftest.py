from unittest.mock import AsyncMock, MagicMock

import pytest

from tests.unit.factories import NOW, make_lot


@pytest.fixture
def mock_uow():
    """Mock unit of work"""
    uow = MagicMock()
    uow.commit = AsyncMock()
    uow.rollback = AsyncMock()
    return uow


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def lot_factory():
    return make_lot
