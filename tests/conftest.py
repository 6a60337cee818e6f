import pytest

from refractx import ObservationContext, use_context


@pytest.fixture(autouse=True)
def ctx():
    """Every test observes through its own context."""
    with use_context(ObservationContext()) as context:
        yield context
