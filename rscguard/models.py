"""Validation result contract shared by the engine and the host adapter.

  - Action           — what the host adapter must do with the request
  - Reason           — why a non-trivial decision was taken
  - ValidationResult — the single record validate_rsc() returns

The adapter depends on these types; they never depend on the adapter.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Action(str, Enum):
    """Decision for a request carrying the guarded query parameter."""

    PASS = "pass"
    """Forward the request unchanged."""
    STRIP = "strip"
    """Rewrite the request without the guarded parameter."""
    BLOCK = "block"
    """Reject the request."""


class Reason(str, Enum):
    RSC_QUERY_PRESENT_BUT_NOT_FLIGHT_REQUEST = "rsc_query_present_but_not_flight_request"
    FLIGHT_REQUEST_BUT_EXPECTED_RSC_EMPTY = "flight_request_but_expected_rsc_empty"
    FLIGHT_REQUEST_MISSING_RSC_VALUE = "flight_request_missing_rsc_value"
    FLIGHT_REQUEST_RSC_MISMATCH = "flight_request_rsc_mismatch"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one request URL against its headers.

    Invariants:
        - ``expected_rsc`` is only set when ``is_flight`` is True.
        - ``stripped_url`` is set if and only if ``action`` is STRIP.
        - ``reason`` is None only for the no-parameter fast path and an exact match.
    """

    has_rsc_param: bool
    is_flight: bool
    ok: bool
    action: Action
    expected_rsc: Optional[str] = None
    provided_rsc: Optional[str] = None
    reason: Optional[Reason] = None
    stripped_url: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        """Render with the camelCase field names used on the wire; absent fields omitted."""
        out: dict[str, Any] = {
            "hasRscParam": self.has_rsc_param,
            "isFlight": self.is_flight,
            "ok": self.ok,
            "action": self.action.value,
        }
        if self.expected_rsc is not None:
            out["expectedRsc"] = self.expected_rsc
        if self.provided_rsc is not None:
            out["providedRsc"] = self.provided_rsc
        if self.reason is not None:
            out["reason"] = self.reason.value
        if self.stripped_url is not None:
            out["strippedUrl"] = self.stripped_url
        return out
