"""
tests/conftest.py

Configuration for pytest.
"""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from domlens.data_models.page import AXNodeRef, PageTarget
from domlens.tools.tool_context import ToolContext
from tests.fakes import FakeCDPSession


@pytest.fixture(scope="session")
def tests_root() -> Path:
    """
    Root directory for tests.
    Returns:
        Path to the tests directory.
    """
    return Path(__file__).parent.resolve()


@pytest.fixture
def page() -> PageTarget:
    """The page every tool call targets."""
    return PageTarget(target_id="page-1", url="https://example.com/", title="Example")


@pytest.fixture
def fake_session() -> FakeCDPSession:
    """A fresh in-memory session bound to page-1."""
    return FakeCDPSession(session_id="session-1", target_id="page-1")


@pytest.fixture
def session_factory(fake_session: FakeCDPSession) -> AsyncMock:
    """Session factory that always hands out `fake_session`."""
    return AsyncMock(return_value=fake_session)


@pytest.fixture
def ax_nodes() -> dict[str, AXNodeRef]:
    """
    UID table of the latest accessibility snapshot.
    Returns:
        Mapping of UID to AXNodeRef ("1_9" has no backend node).
    """
    return {
        "1_1": AXNodeRef(backend_node_id=101),
        "1_2": AXNodeRef(backend_node_id=102),
        "1_3": AXNodeRef(backend_node_id=103),
        "1_9": AXNodeRef(backend_node_id=None),
    }


@pytest.fixture
def tool_context(session_factory: AsyncMock, page: PageTarget, ax_nodes: dict[str, AXNodeRef]) -> ToolContext:
    """ToolContext wired to the fake session with a short settling delay."""
    return ToolContext(
        session_factory=session_factory,
        get_selected_page=lambda: page,
        get_ax_node_by_uid=ax_nodes.get,
        settle_delay=0.01,
    )
