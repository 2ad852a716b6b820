"""
domlens/cdp/abstract_cdp_session.py

Abstract base class for page-bound CDP sessions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable


EventHandler = Callable[[dict[str, Any]], None]


class AbstractCDPSession(ABC):
    """
    Abstract base class for one CDP channel bound to exactly one page.
    The inspection core only talks to this interface; concrete transports
    (AsyncCDPSession, test fakes, ...) inherit from it.
    """

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, session_id: str, target_id: str) -> None:
        """
        Initialize the session.
        Args:
            session_id: CDP sessionId of the channel (unique per attachment).
            target_id: CDP targetId of the page the session is bound to.
        """
        self.session_id = session_id
        self.target_id = target_id
        self.detached = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(session_id={self.session_id!r}, target_id={self.target_id!r})"


    # Abstract methods _____________________________________________________________________________________________________

    @abstractmethod
    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Send a CDP command on this session and wait for its result.
        Args:
            method: The CDP method, e.g. "DOM.describeNode".
            params: The command parameters.
        Returns:
            The command result (empty dict for commands without a result).
        Raises:
            CDPProtocolError: If the browser answers with an error.
        """
        pass

    @abstractmethod
    def on(self, event: str, handler: EventHandler) -> None:
        """
        Register a handler for a CDP event on this session (e.g. "DOM.setChildNodes").
        Handlers receive the event params.
        """
        pass

    @abstractmethod
    def off(self, event: str, handler: EventHandler) -> None:
        """Unregister a handler previously registered with on(). Unknown handlers are ignored."""
        pass

    @abstractmethod
    async def detach(self) -> None:
        """Detach the session from its page. Detaching twice is a no-op."""
        pass

    def release(self) -> None:
        """
        Mark the session as gone without talking to the browser.
        Used when the page itself has closed and there is nothing left to detach from.
        """
        self.detached = True
