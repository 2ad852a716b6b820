"""
domlens/tools/storage_tools.py

Cookie and origin storage tools.

Each call runs on its own short-lived session that is detached on every exit path,
so storage commands never touch the long-lived inspection session of the page.
"""

from __future__ import annotations

from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Annotated, Any, AsyncIterator, Literal

from pydantic import Field, validate_call

from domlens.cdp.abstract_cdp_session import AbstractCDPSession
from domlens.tools.tool_context import ToolContext
from domlens.tools.tool_utils import build_tool_definition, dump_result
from domlens.utils.exceptions import ConfirmationRequiredError
from domlens.utils.logger import get_logger

logger = get_logger(name=__name__)


BYTES_PER_MB = 1024 * 1024


def _format_mb(size_bytes: float) -> str:
    return f"{size_bytes / BYTES_PER_MB:.2f} MB"


class StorageTools:
    """
    The storage tool set, bound to one ToolContext.
    """

    TOOL_NAMES: tuple[str, ...] = (
        "get_cookies",
        "get_cookies_for_domain",
        "set_cookie",
        "clear_all_cookies",
        "get_storage_usage",
        "clear_storage_for_origin",
        "track_cache_storage",
        "track_indexeddb",
        "override_storage_quota",
    )

    def __init__(self, context: ToolContext) -> None:
        self.context = context

    @asynccontextmanager
    async def _storage_session(self) -> AsyncIterator[AbstractCDPSession]:
        page = self.context.get_selected_page()
        async with self.context.session_manager.scoped_session(page) as session:
            yield session

    def get_tool_definitions(self) -> list[dict[str, Any]]:
        """Tool definitions (name, description, parameters) of every storage tool."""
        return [build_tool_definition(getattr(self, name)) for name in self.TOOL_NAMES]

    @validate_call
    async def get_cookies(self) -> str:
        """
        Get all cookies for the currently selected page. Returns cookies grouped by domain.
        """
        async with self._storage_session() as session:
            result = await session.send("Storage.getCookies")

        cookies = result.get("cookies", [])
        cookies_by_domain: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for cookie in cookies:
            cookies_by_domain[cookie.get("domain", "")].append(cookie)
        return dump_result({
            "totalCookies": len(cookies),
            "domains": list(cookies_by_domain),
            "cookiesByDomain": cookies_by_domain,
        })

    @validate_call
    async def get_cookies_for_domain(self, domain: str) -> str:
        """
        Get cookies filtered by domain. Uses flexible matching so ".x.com" matches "x.com" cookies.

        Args:
            domain: Domain to filter cookies by. Uses substring matching (e.g., "x.com" matches ".x.com").
        """
        async with self._storage_session() as session:
            result = await session.send("Storage.getCookies")

        filtered = [cookie for cookie in result.get("cookies", []) if domain in cookie.get("domain", "")]
        return dump_result({"domain": domain, "totalCookies": len(filtered), "cookies": filtered})

    @validate_call
    async def set_cookie(
        self,
        name: str,
        value: str,
        domain: str | None = None,
        path: str | None = None,
        expires: float | None = None,
        http_only: bool | None = None,
        secure: bool | None = None,
        same_site: Literal["Strict", "Lax", "None"] | None = None,
    ) -> str:
        """
        Set a cookie on the currently selected page.

        Args:
            name: Cookie name.
            value: Cookie value.
            domain: Cookie domain.
            path: Cookie path. Defaults to "/".
            expires: Cookie expiration as a Unix timestamp in seconds.
            http_only: Whether the cookie is HTTP-only.
            secure: Whether the cookie is secure.
            same_site: Cookie SameSite attribute.
        """
        cookie: dict[str, Any] = {"name": name, "value": value}
        optional_fields = {
            "domain": domain,
            "path": path,
            "expires": expires,
            "httpOnly": http_only,
            "secure": secure,
            "sameSite": same_site,
        }
        cookie.update({key: val for key, val in optional_fields.items() if val is not None})

        async with self._storage_session() as session:
            await session.send("Storage.setCookies", {"cookies": [cookie]})

        logger.info("🍪 Cookie %s set", name)
        return dump_result({"name": name, "message": f'Cookie "{name}" set successfully.'})

    @validate_call
    async def clear_all_cookies(self, confirm: bool) -> str:
        """
        Clear all cookies for the current browser context. Requires confirm parameter set to true as a safety guard.

        Args:
            confirm: Must be set to true to confirm clearing all cookies. This is a destructive operation.
        """
        if not confirm:
            raise ConfirmationRequiredError(operation="clear_all_cookies", target="clear all cookies")

        async with self._storage_session() as session:
            await session.send("Storage.clearCookies")

        logger.info("🧹 All cookies cleared")
        return dump_result({"message": "All cookies cleared successfully."})

    @validate_call
    async def get_storage_usage(self, origin: str) -> str:
        """
        Get storage usage and quota for a given origin. Returns usage breakdown by storage type.

        Args:
            origin: The origin to get storage usage for (e.g., "https://example.com").
        """
        async with self._storage_session() as session:
            result = await session.send("Storage.getUsageAndQuota", {"origin": origin})

        usage = result.get("usage", 0)
        quota = result.get("quota", 0)
        return dump_result({
            "origin": origin,
            "usage": _format_mb(usage),
            "usageBytes": usage,
            "quota": _format_mb(quota),
            "quotaBytes": quota,
            "usageBreakdown": result.get("usageBreakdown", []),
        })

    @validate_call
    async def clear_storage_for_origin(
        self,
        origin: str,
        confirm: bool,
        storage_types: str | None = None,
    ) -> str:
        """
        Clear storage data for a given origin. Requires confirm parameter set to true as a safety guard.

        Args:
            origin: The origin to clear storage for (e.g., "https://example.com").
            confirm: Must be set to true to confirm clearing storage. This is a destructive operation.
            storage_types: Comma-separated list of storage types to clear (e.g., "local_storage,indexeddb,cache_storage"). If omitted, clears all storage types.
        """
        if not confirm:
            raise ConfirmationRequiredError(operation="clear_storage_for_origin", target="clear storage")

        types = storage_types or "all"
        async with self._storage_session() as session:
            await session.send("Storage.clearDataForOrigin", {"origin": origin, "storageTypes": types})

        logger.info("🧹 Storage cleared for %s (%s)", origin, types)
        return dump_result({
            "origin": origin,
            "storageTypes": types,
            "message": f'Storage cleared for origin "{origin}" (types: {types}).',
        })

    @validate_call
    async def track_cache_storage(self, origin: str, track: bool) -> str:
        """
        Enable or disable tracking of cache storage events for a given origin at the protocol level.

        Args:
            origin: The origin to track cache storage for.
            track: Set to true to start tracking, false to stop tracking.
        """
        method = "Storage.trackCacheStorageForOrigin" if track else "Storage.untrackCacheStorageForOrigin"
        async with self._storage_session() as session:
            await session.send(method, {"origin": origin})

        state = "enabled" if track else "disabled"
        return dump_result({
            "origin": origin,
            "tracking": track,
            "message": f'Cache storage tracking {state} for origin "{origin}".',
        })

    @validate_call
    async def track_indexeddb(self, origin: str, track: bool) -> str:
        """
        Enable or disable tracking of IndexedDB events for a given origin at the protocol level.

        Args:
            origin: The origin to track IndexedDB for.
            track: Set to true to start tracking, false to stop tracking.
        """
        method = "Storage.trackIndexedDBForOrigin" if track else "Storage.untrackIndexedDBForOrigin"
        async with self._storage_session() as session:
            await session.send(method, {"origin": origin})

        state = "enabled" if track else "disabled"
        return dump_result({
            "origin": origin,
            "tracking": track,
            "message": f'IndexedDB tracking {state} for origin "{origin}".',
        })

    @validate_call
    async def override_storage_quota(
        self,
        origin: str,
        quota_size: Annotated[float, Field(ge=0)] | None = None,
    ) -> str:
        """
        Override the storage quota for a given origin. Omit quota_size to reset to the default quota.

        Args:
            origin: The origin to override storage quota for.
            quota_size: The quota size in bytes. Omit to reset to the default quota.
        """
        params: dict[str, Any] = {"origin": origin}
        if quota_size is not None:
            params["quotaSize"] = quota_size

        async with self._storage_session() as session:
            await session.send("Storage.overrideQuotaForOrigin", params)

        if quota_size is not None:
            message = f'Storage quota for origin "{origin}" set to {_format_mb(quota_size)} ({quota_size:g} bytes).'
        else:
            message = f'Storage quota for origin "{origin}" reset to default.'
        return dump_result({"origin": origin, "quotaSize": quota_size, "message": message})
