"""
domlens/utils/chrome_utils.py

Utilities for locating a Chrome instance running in debug mode.
"""

from urllib.parse import urlparse, urlunparse

import requests

from domlens.config import Config
from domlens.utils.exceptions import BrowserConnectionError
from domlens.utils.logger import get_logger


logger = get_logger(name=__name__)


def check_chrome_running(remote_debugging_address: str = Config.REMOTE_DEBUGGING_ADDRESS) -> bool:
    """Check if Chrome is answering on the given debugging address."""
    base = remote_debugging_address.rstrip("/")
    try:
        response = requests.get(f"{base}/json/version", timeout=1)
        return response.status_code == 200
    except requests.RequestException:
        return False


def get_browser_websocket_url(remote_debugging_address: str = Config.REMOTE_DEBUGGING_ADDRESS) -> str:
    """
    Get the normalized WebSocket URL for the browser connection.

    Args:
        remote_debugging_address: The Chrome debugging server address (e.g., 'http://127.0.0.1:9222').

    Returns:
        The WebSocket URL, with its host rewritten to the reachable debugging address.

    Raises:
        BrowserConnectionError: If unable to get the WebSocket URL from the browser.
    """
    base = remote_debugging_address.rstrip("/")
    try:
        ver = requests.get(f"{base}/json/version", timeout=5)
        ver.raise_for_status()
        data = ver.json()
    except (requests.RequestException, ValueError) as e:
        raise BrowserConnectionError(f"Failed to get browser WebSocket URL: {e}") from e

    raw_ws = data.get("webSocketDebuggerUrl")
    if not raw_ws:
        raise BrowserConnectionError("/json/version missing webSocketDebuggerUrl")

    # normalize netloc to our reachable hostname:port (Chrome may report 0.0.0.0 or a container name)
    parsed = urlparse(raw_ws)
    base_parsed = urlparse(base)
    if base_parsed.hostname and base_parsed.port:
        parsed = parsed._replace(netloc=f"{base_parsed.hostname}:{base_parsed.port}")
    ws_url = urlunparse(parsed)
    logger.debug("Normalized WebSocket URL: %s (raw: %s)", ws_url, raw_ws)
    return ws_url
