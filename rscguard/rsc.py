"""_rsc validation engine.

Checks that the ``_rsc`` cache-busting query parameter on an App Router
request agrees with the value the client would have derived from its Flight
headers, and decides what the host adapter should do when it does not.

  - is_flight_request()     — is this a Flight (RSC payload) request?
  - compute_expected_rsc()  — predict _rsc from the four router headers
  - strip_rsc()             — drop _rsc from a URL, keep everything else verbatim
  - validate_rsc()          — full decision: pass / strip / block

_rsc is NOT a security token. The guard exists to cut cache fragmentation and
low-effort bot traffic; whenever the headers carry too little signal to
predict _rsc, the request passes.

Everything here is a pure function of its arguments: no I/O, no shared state.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import SplitResult, parse_qsl, unquote_plus, urljoin, urlsplit

from rscguard.config import GuardOptions, OptionsInput, normalize_options
from rscguard.constants import (
    ACCEPT_HEADER,
    DEFAULT_RSC_QUERY_PARAM,
    EMPTY_SIGNAL_SENTINEL,
    FLIGHT_MARKER_VALUE,
    NEUTRAL_BASE_URL,
    RSC_CONTENT_TYPE,
)
from rscguard.errors import InvalidURLError
from rscguard.hashing import short_hash
from rscguard.headers import HeaderBag, as_header_bag
from rscguard.models import Action, Reason, ValidationResult

# Schemes whose URLs must carry a host.
_SPECIAL_SCHEMES: frozenset[str] = frozenset({"http", "https", "ws", "wss"})

# Characters never valid in a (non-IPv6) host name.
_FORBIDDEN_HOST_CHARS: frozenset[str] = frozenset(" \t\n\r#%/<>?@[\\]^|")


# ─── URL helpers ─────────────────────────────────────────────────────────────


def _parse_url(url: str) -> SplitResult:
    """Parse ``url`` (absolute or relative) against the neutral base.

    Raises:
        TypeError: If ``url`` is not a str.
        InvalidURLError: If the URL cannot be parsed.
    """
    if not isinstance(url, str):
        raise TypeError(f"url must be a str, got {type(url).__name__}")

    try:
        raw = urlsplit(url)
        if raw.scheme in _SPECIAL_SCHEMES and not raw.hostname:
            raise InvalidURLError(url, "missing host")
        parts = urlsplit(urljoin(NEUTRAL_BASE_URL, url))
        parts.port  # raises ValueError on a non-numeric or out-of-range port
    except InvalidURLError:
        raise
    except ValueError as exc:
        raise InvalidURLError(url, str(exc)) from exc

    host = parts.hostname or ""
    if "[" not in parts.netloc and any(
        ch in _FORBIDDEN_HOST_CHARS or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in host
    ):
        raise InvalidURLError(url, f"invalid host {host!r}")
    return parts


def _segment_name(segment: str) -> str:
    return unquote_plus(segment.split("=", 1)[0])


def _find_param(query: str, name: str) -> tuple[bool, Optional[str]]:
    """Return (present, first value) for form-encoded query parameter ``name``."""
    for key, value in parse_qsl(query, keep_blank_values=True):
        if key == name:
            return True, value
    return False, None


def _relative_without_param(parts: SplitResult, param_name: str) -> str:
    kept = [
        segment
        for segment in parts.query.split("&")
        if segment and _segment_name(segment) != param_name
    ]
    out = parts.path or "/"
    if kept:
        out += "?" + "&".join(kept)
    if parts.fragment:
        out += "#" + parts.fragment
    return out


def strip_rsc(url: str, param_name: str = DEFAULT_RSC_QUERY_PARAM) -> str:
    """Remove every ``param_name`` query parameter from ``url``.

    Returns a relative URL (path + query + fragment); scheme and host are
    dropped. Remaining parameters keep their order and original encoding.

    Example::

        >>> strip_rsc("https://example.com/x?_rsc=abc&foo=1#h")
        '/x?foo=1#h'

    Raises:
        InvalidURLError: If ``url`` cannot be parsed.
    """
    return _relative_without_param(_parse_url(url), param_name)


# ─── Flight classification / expected value ──────────────────────────────────


def _is_flight(bag: HeaderBag, options: GuardOptions) -> bool:
    if bag.get(options.rsc_header) != FLIGHT_MARKER_VALUE:
        return False
    if not bag.get(options.router_state_tree_header):
        return False
    if options.require_accept_rsc:
        accept = bag.get(ACCEPT_HEADER)
        if not accept or RSC_CONTENT_TYPE not in accept.lower():
            return False
    return True


def is_flight_request(headers: Any, options: OptionsInput = None) -> bool:
    """Return True if the headers identify a Flight request.

    A Flight request has ``rsc: 1`` and a non-empty ``next-router-state-tree``.
    With ``require_accept_rsc`` the ``accept`` header must also mention
    ``text/x-component``.
    """
    return _is_flight(as_header_bag(headers), normalize_options(options))


def _expected_rsc(bag: HeaderBag, options: GuardOptions) -> str:
    raw = ",".join(
        bag.get(name) or ""
        for name in (
            options.router_prefetch_header,
            options.segment_prefetch_header,
            options.router_state_tree_header,
            options.next_url_header,
        )
    )
    if not raw or raw == EMPTY_SIGNAL_SENTINEL:
        return ""
    return short_hash(raw)


def compute_expected_rsc(headers: Any, options: OptionsInput = None) -> str:
    """Predict the _rsc value a client would send with these headers.

    Hashes ``prefetch,segmentPrefetch,stateTree,nextUrl``. Returns ``""`` when
    all four headers are absent (cannot compute).
    """
    return _expected_rsc(as_header_bag(headers), normalize_options(options))


# ─── Decision engine ─────────────────────────────────────────────────────────


def validate_rsc(url: str, headers: Any, options: OptionsInput = None) -> ValidationResult:
    """Validate the _rsc query parameter of ``url`` against ``headers``.

    Decision tree:
      - no _rsc                          → pass
      - _rsc but not a Flight request    → options.on_non_flight_with_rsc
      - Flight, expected value empty     → pass (fail-open)
      - Flight, _rsc empty               → options.on_mismatch
      - Flight, _rsc == expected         → pass
      - Flight, _rsc != expected         → options.on_mismatch

    Args:
        url:     Request URL, absolute or relative.
        headers: Request headers in any shape accepted by as_header_bag().
        options: None, GuardOptions, or a mapping of options.

    Returns:
        ValidationResult; ``stripped_url`` is set whenever the action is strip.

    Raises:
        InvalidURLError: If ``url`` cannot be parsed.
        InvalidOptionError: If ``options`` holds an invalid value.
    """
    opts = normalize_options(options)
    parts = _parse_url(url)
    has_rsc_param, provided_rsc = _find_param(parts.query, opts.rsc_query_param)

    if not has_rsc_param:
        return ValidationResult(has_rsc_param=False, is_flight=False, ok=True, action=Action.PASS)

    bag = as_header_bag(headers)

    def decide(
        action: Action,
        reason: Reason,
        is_flight: bool,
        expected_rsc: Optional[str] = None,
    ) -> ValidationResult:
        return ValidationResult(
            has_rsc_param=True,
            is_flight=is_flight,
            ok=action is not Action.BLOCK,
            action=action,
            expected_rsc=expected_rsc,
            provided_rsc=provided_rsc,
            reason=reason,
            stripped_url=(
                _relative_without_param(parts, opts.rsc_query_param)
                if action is Action.STRIP
                else None
            ),
        )

    if not _is_flight(bag, opts):
        return decide(
            opts.on_non_flight_with_rsc,
            Reason.RSC_QUERY_PRESENT_BUT_NOT_FLIGHT_REQUEST,
            is_flight=False,
        )

    expected_rsc = _expected_rsc(bag, opts)

    if not expected_rsc:
        return ValidationResult(
            has_rsc_param=True,
            is_flight=True,
            ok=True,
            action=Action.PASS,
            expected_rsc=expected_rsc,
            provided_rsc=provided_rsc,
            reason=Reason.FLIGHT_REQUEST_BUT_EXPECTED_RSC_EMPTY,
        )

    # An empty value is treated exactly like a missing one.
    if not provided_rsc:
        return decide(
            opts.on_mismatch,
            Reason.FLIGHT_REQUEST_MISSING_RSC_VALUE,
            is_flight=True,
            expected_rsc=expected_rsc,
        )

    if provided_rsc == expected_rsc:
        return ValidationResult(
            has_rsc_param=True,
            is_flight=True,
            ok=True,
            action=Action.PASS,
            expected_rsc=expected_rsc,
            provided_rsc=provided_rsc,
        )

    return decide(
        opts.on_mismatch,
        Reason.FLIGHT_REQUEST_RSC_MISMATCH,
        is_flight=True,
        expected_rsc=expected_rsc,
    )
