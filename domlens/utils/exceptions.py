"""
domlens/utils/exceptions.py

Custom exceptions for domlens.

Contains:
- InspectionError (+ InspectionErrorKind): tagged base for all inspection failures
- UnknownUidError: UID missing from the snapshot lookup table
- ResolutionError: backend node id could not become a session-scoped node id
- OptionalDataUnavailableError: a secondary enrichment call failed
- CDPProtocolError: any other CDP-level failure
- ConfirmationRequiredError: destructive operation called without confirmation
- BrowserConnectionError, NoPageSelectedError: transport / page lifecycle failures
"""

from enum import StrEnum
from typing import Any, ClassVar


class InspectionErrorKind(StrEnum):
    """Closed set of failure kinds surfaced by inspection tools."""

    UNKNOWN_UID = "unknown_uid"
    RESOLUTION_FAILURE = "resolution_failure"
    OPTIONAL_DATA_UNAVAILABLE = "optional_data_unavailable"
    PROTOCOL_ERROR = "protocol_error"
    CONFIRMATION_REQUIRED = "confirmation_required"


class InspectionError(Exception):
    """
    Base exception for all inspection failures.
    Carries a `kind` tag and structured `fields` so callers never need to match on message text.
    """

    kind: ClassVar[InspectionErrorKind]

    def __init__(self, message: str, **fields: Any) -> None:
        super().__init__(message)
        self.message = message
        self.fields: dict[str, Any] = fields

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize the error for structured reporting.
        Returns:
            Dict with 'kind', 'message' and every structured field.
        """
        return {
            "kind": str(self.kind),
            "message": self.message,
            **self.fields,
        }


class UnknownUidError(InspectionError):
    """
    Raised when a UID is not in the snapshot lookup table, or has no backend node id.
    Not retryable without taking a fresh snapshot.
    """

    kind = InspectionErrorKind.UNKNOWN_UID

    def __init__(self, uid: str) -> None:
        super().__init__(
            f'Could not find element with UID "{uid}". Make sure to call take_snapshot first.',
            uid=uid,
        )
        self.uid = uid


class ResolutionError(InspectionError):
    """
    Raised when a backend node id cannot be converted to a node id for the current session
    (detached node, stale document, or a handle minted by another session).
    """

    kind = InspectionErrorKind.RESOLUTION_FAILURE

    def __init__(self, backend_node_id: int | None, reason: str = "Could not resolve backendNodeId to nodeId") -> None:
        super().__init__(reason, backend_node_id=backend_node_id)
        self.backend_node_id = backend_node_id


class OptionalDataUnavailableError(InspectionError):
    """
    Raised when a secondary enrichment (box model, outer HTML, attributes) fails for a node
    that otherwise resolved. Tools catch it and degrade the corresponding field.
    """

    kind = InspectionErrorKind.OPTIONAL_DATA_UNAVAILABLE

    def __init__(self, field: str, cause: Exception | None = None) -> None:
        super().__init__(
            f"Optional field '{field}' is unavailable" + (f": {cause}" if cause else ""),
            field=field,
        )
        self.field = field
        self.cause = cause


class CDPProtocolError(InspectionError):
    """
    Raised when a CDP command returns an error (unsupported domain, malformed selector, ...).
    Propagated unchanged; never retried.
    """

    kind = InspectionErrorKind.PROTOCOL_ERROR

    def __init__(
        self,
        method: str,
        message: str,
        code: int | None = None,
        data: str | None = None,
    ) -> None:
        super().__init__(
            f"CDP error from {method}: {message}" + (f" ({data})" if data else ""),
            method=method,
            code=code,
            data=data,
        )
        self.method = method
        self.code = code
        self.data = data
        self.protocol_message = message


class ConfirmationRequiredError(InspectionError):
    """
    Raised when a destructive operation is invoked without `confirm=True`.
    """

    kind = InspectionErrorKind.CONFIRMATION_REQUIRED

    def __init__(self, operation: str, target: str) -> None:
        super().__init__(
            f'You must set "confirm" to true to {target}. This is a destructive operation.',
            operation=operation,
        )
        self.operation = operation


class BrowserConnectionError(Exception):
    """
    Exception raised when unable to connect to the browser or attach to a browser tab.
    """


class NoPageSelectedError(Exception):
    """
    Raised when a tool needs a page but none is currently selected.
    """
