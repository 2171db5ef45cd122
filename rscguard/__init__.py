"""rscguard — _rsc cache-busting parameter validation for App Router traffic.

Public API:

    from rscguard import validate_rsc, RscGuardMiddleware

Layout:
    headers.py    — case-insensitive lookup over dict / pair-list / get()-style headers
    hashing.py    — djb2 → base-36 short hash
    rsc.py        — flight classifier, expected-value predictor, URL stripper, decision engine
    models.py     — Action, Reason, ValidationResult
    config.py     — GuardOptions normalization + YAML config loading
    responses.py  — block / invalid-URL response builders
    middleware.py — RscGuardMiddleware (Starlette / FastAPI)

_rsc is NOT a security token; the guard only reduces cache fragmentation and
low-effort bot traffic.
"""

from rscguard.config import (
    AdapterConfig,
    GuardConfig,
    GuardOptions,
    load_config,
    normalize_options,
)
from rscguard.errors import InvalidOptionError, InvalidURLError
from rscguard.hashing import djb2_hash, short_hash
from rscguard.headers import (
    CapabilityLookup,
    HeaderBag,
    MappingHeaders,
    OrderedPairs,
    as_header_bag,
    get_header,
)
from rscguard.middleware import RscGuardMiddleware, guard_request, request_target_url
from rscguard.models import Action, Reason, ValidationResult
from rscguard.rsc import compute_expected_rsc, is_flight_request, strip_rsc, validate_rsc

__all__ = [
    # Engine
    "validate_rsc",
    "compute_expected_rsc",
    "is_flight_request",
    "strip_rsc",
    "djb2_hash",
    "short_hash",
    # Headers
    "HeaderBag",
    "CapabilityLookup",
    "OrderedPairs",
    "MappingHeaders",
    "as_header_bag",
    "get_header",
    # Models
    "Action",
    "Reason",
    "ValidationResult",
    # Config
    "GuardOptions",
    "AdapterConfig",
    "GuardConfig",
    "normalize_options",
    "load_config",
    # Errors
    "InvalidURLError",
    "InvalidOptionError",
    # Host adapter
    "RscGuardMiddleware",
    "guard_request",
    "request_target_url",
]
