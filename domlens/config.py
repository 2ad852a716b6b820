"""
domlens/config.py

Centralized environment variable configuration.
"""

import os
from typing import Any

from dotenv import load_dotenv

load_dotenv()


class Config():
    """
    Centralized configuration for environment variables.
    """

    # logging
    LOG_LEVEL: str = os.getenv("DOMLENS_LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("DOMLENS_LOG_FORMAT", "[%(asctime)s] %(levelname)s:%(name)s:%(message)s")
    LOG_DATE_FORMAT: str = os.getenv("DOMLENS_LOG_DATE_FORMAT", "%Y-%m-%d %H:%M:%S")

    # browser connection
    REMOTE_DEBUGGING_ADDRESS: str = os.getenv("DOMLENS_REMOTE_DEBUGGING_ADDRESS", "http://127.0.0.1:9222")
    CDP_COMMAND_TIMEOUT: float = float(os.getenv("DOMLENS_CDP_COMMAND_TIMEOUT", "10.0"))

    # inspection bounds
    CHILD_NODES_SETTLE_DELAY: float = float(os.getenv("DOMLENS_CHILD_NODES_SETTLE_DELAY", "0.1"))  # seconds
    SNAPSHOT_MAX_NODES_PER_DOCUMENT: int = int(os.getenv("DOMLENS_SNAPSHOT_MAX_NODES_PER_DOCUMENT", "50"))

    @classmethod
    def as_dict(cls) -> dict[str, Any]:
        """
        Return a dictionary of all UPPERCASE class attributes and their values.
        Return:
            dict[str, Any]: A dictionary of all UPPERCASE class attributes and their values.
        """
        return {
            key: getattr(cls, key)
            for key in dir(cls)
            if key.isupper()
        }
