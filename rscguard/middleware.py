"""Starlette / FastAPI middleware enforcing _rsc validation.

Registration:

    application.add_middleware(RscGuardMiddleware, config=load_config())

or with inline options:

    application.add_middleware(
        RscGuardMiddleware,
        options={"on_mismatch": "block"},
        block_status=404,
        debug_headers=True,
    )

Per request, the validation result is turned into:

  - pass  → the request continues unchanged
  - block → empty-body response with ``block_status``; downstream never runs
  - strip → the ASGI scope's query string is replaced with the stripped one,
            then the request continues. Path and routing are untouched.

Diagnostic headers (``x-next-rsc-guard-action`` / ``-reason``) are attached to
blocked and rewritten responses only when ``debug_headers`` is enabled.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, MutableMapping, Optional
from urllib.parse import quote, urlsplit

from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from rscguard.config import AdapterConfig, GuardConfig, OptionsInput, normalize_options
from rscguard.errors import InvalidURLError
from rscguard.models import Action, ValidationResult
from rscguard.responses import (
    apply_debug_headers,
    build_block_response,
    build_invalid_url_response,
)
from rscguard.rsc import validate_rsc
from rscguard.utils.logger import get_logger

logger = get_logger(__name__)

_DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443, "ws": 80, "wss": 443}

# Characters that would move part of the Host header into the path or query.
_HOST_DELIMITERS: frozenset[str] = frozenset("/?#\\@")


def rewrite_request_url(scope: MutableMapping[str, Any], stripped_url: str) -> None:
    """Replace the query string of an ASGI ``scope`` with the one in ``stripped_url``.

    The fragment is never sent to a server, so only the query is written back.
    """
    scope["query_string"] = urlsplit(stripped_url).query.encode("utf-8")


def _scope_host(scope: Mapping[str, Any]) -> str:
    host = Headers(scope=scope).get("host")
    if host:
        if any(ch in _HOST_DELIMITERS for ch in host):
            raise InvalidURLError(host, f"invalid Host header {host!r}")
        return host
    server = scope.get("server")
    if not server:
        return "localhost"
    name, port = server
    if port is None or _DEFAULT_PORTS.get(scope.get("scheme", "http")) == port:
        return name
    return f"{name}:{port}"


def request_target_url(scope: Mapping[str, Any]) -> str:
    """Rebuild the URL the client sent from the raw parts of an ASGI ``scope``.

    Uses ``raw_path`` and ``query_string`` as received, so an encoded ``?`` or
    ``#`` in the path stays encoded and cannot hide the real query. The host
    comes from the Host header, falling back to ``scope["server"]``.

    Raises:
        InvalidURLError: If the query string is not valid UTF-8 or the Host
            header contains URL delimiters.
    """
    raw_path = scope.get("raw_path")
    if raw_path:
        path = raw_path.decode("latin-1").split("?", 1)[0].replace("#", "%23")
    else:
        path = quote(scope.get("path") or "/")

    raw_query: bytes = scope.get("query_string", b"")
    try:
        query = raw_query.decode("utf-8").replace("#", "%23")
    except UnicodeDecodeError as exc:
        raise InvalidURLError(
            path + "?" + raw_query.decode("latin-1"), "query string is not valid UTF-8"
        ) from exc

    target = path + ("?" + query if query else "")
    return f"{scope.get('scheme', 'http')}://{_scope_host(scope)}{target}"


def guard_request(request: Request, config: GuardConfig) -> ValidationResult:
    """Validate an incoming request's _rsc parameter against its headers.

    Raises:
        InvalidURLError: If the request URL cannot be parsed.
    """
    return validate_rsc(request_target_url(request.scope), request.headers, config.guard)


def _build_config(
    config: Optional[GuardConfig],
    options: OptionsInput,
    block_status: Optional[int],
    debug_headers: Optional[bool],
) -> GuardConfig:
    base = config or GuardConfig.defaults()
    guard = base.guard if options is None else normalize_options(options)

    # Adapter options may ride along in the options mapping (blockStatus / debugHeaders).
    adapter_raw: dict[str, Any] = {
        "block_status": base.adapter.block_status,
        "debug_headers": base.adapter.debug_headers,
    }
    if isinstance(options, Mapping):
        adapter_raw.update(options)
    if block_status is not None:
        adapter_raw["block_status"] = block_status
    if debug_headers is not None:
        adapter_raw["debug_headers"] = debug_headers

    return GuardConfig(
        version=base.version,
        guard=guard,
        adapter=AdapterConfig.from_dict(adapter_raw),
        path=base.path,
    )


class RscGuardMiddleware(BaseHTTPMiddleware):
    """Validate the _rsc query parameter of every HTTP request.

    Args:
        app:           Downstream ASGI application.
        options:       Guard options (None, GuardOptions, or a mapping). Overrides
                       ``config.guard`` when given.
        block_status:  Status for blocked requests. Overrides ``config.adapter``.
        debug_headers: Attach diagnostic headers. Overrides ``config.adapter``.
        config:        Complete GuardConfig, e.g. from load_config().

    Raises:
        InvalidOptionError: On invalid options, at construction time.
    """

    def __init__(
        self,
        app: ASGIApp,
        options: OptionsInput = None,
        *,
        block_status: Optional[int] = None,
        debug_headers: Optional[bool] = None,
        config: Optional[GuardConfig] = None,
    ) -> None:
        super().__init__(app)
        self.config = _build_config(config, options, block_status, debug_headers)

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        try:
            result = guard_request(request, self.config)
        except InvalidURLError as exc:
            logger.warning(
                "Rejecting request with unparseable URL",
                path=request.scope.get("path"),
                detail=exc.detail,
            )
            return build_invalid_url_response()

        if result.action is Action.PASS:
            return await call_next(request)

        adapter = self.config.adapter
        log_fields = {
            "action": result.action.value,
            "reason": result.reason.value if result.reason else None,
            "path": request.scope.get("path"),
            "expected_rsc": result.expected_rsc,
            "provided_rsc": result.provided_rsc,
        }

        if result.action is Action.BLOCK:
            logger.warning("Blocked request with invalid _rsc", status=adapter.block_status, **log_fields)
            return build_block_response(
                result,
                status=adapter.block_status,
                debug_headers=adapter.debug_headers,
            )

        logger.info("Stripped _rsc from request", **log_fields)
        rewrite_request_url(request.scope, result.stripped_url or "")
        response = await call_next(request)
        if adapter.debug_headers:
            apply_debug_headers(response, result)
        return response
