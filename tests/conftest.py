import pytest

from fake_bridge import FakeBridge


@pytest.fixture
def fake_bridge():
    """Unstarted fake bridge; call ``await fake_bridge.start()`` inside the test's event loop."""
    return FakeBridge()
