import pytest

from data_generator import generate_events
from schemas import DateRange
from factories import MONDAY, day


@pytest.fixture
def week():
    """Monday 2024-03-04 through Sunday 2024-03-10."""
    return DateRange(start=MONDAY, end=day(6))


@pytest.fixture(scope="session")
def generated():
    """60 days of simulated traffic starting 2024-05-01."""
    return generate_events()
