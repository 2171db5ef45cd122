"""Response builders for the rscguard host adapter.

  build_block_response():
      Empty-body response with the configured status (404 by default) for
      requests the guard decided to block.

  apply_debug_headers():
      Attaches ``x-next-rsc-guard-action`` / ``x-next-rsc-guard-reason`` to a
      blocked or rewritten response when debug headers are enabled.

  build_invalid_url_response():
      HTTP 400 for a request whose URL could not be parsed.
"""

from __future__ import annotations

from fastapi.responses import JSONResponse, Response

from rscguard.constants import DEBUG_ACTION_HEADER, DEBUG_REASON_HEADER, DEFAULT_BLOCK_STATUS
from rscguard.models import ValidationResult

_INVALID_URL_BODY: dict = {
    "error": {
        "message": "Invalid request URL",
        "code": "bad_request",
    }
}


def apply_debug_headers(response: Response, result: ValidationResult) -> None:
    """Set the diagnostic action/reason headers on ``response``.

    The reason header is only set when the result carries a reason.
    """
    response.headers[DEBUG_ACTION_HEADER] = result.action.value
    if result.reason is not None:
        response.headers[DEBUG_REASON_HEADER] = result.reason.value


def build_block_response(
    result: ValidationResult,
    status: int = DEFAULT_BLOCK_STATUS,
    debug_headers: bool = False,
) -> Response:
    """Build the empty-body response returned for a blocked request.

    No validation details are leaked in the body; with ``debug_headers`` the
    action and reason are exposed as response headers only.

    Args:
        result:        ValidationResult with action == Action.BLOCK.
        status:        HTTP status to return.
        debug_headers: Attach the diagnostic headers.
    """
    response = Response(status_code=status)
    if debug_headers:
        apply_debug_headers(response, result)
    return response


def build_invalid_url_response() -> JSONResponse:
    return JSONResponse(status_code=400, content=_INVALID_URL_BODY)
