"""Shared constants for rscguard.

Header names, the guarded query parameter, hash parameters and adapter
defaults are defined here. No magic strings in other modules — import from here.
"""

# ─── Guarded query parameter ─────────────────────────────────────────────────

# Cache-busting query parameter appended by the App Router to Flight requests.
DEFAULT_RSC_QUERY_PARAM: str = "_rsc"

# ─── Flight request headers ──────────────────────────────────────────────────

# Marker header sent on every Flight request. Must equal FLIGHT_MARKER_VALUE.
DEFAULT_RSC_HEADER: str = "rsc"
FLIGHT_MARKER_VALUE: str = "1"

DEFAULT_ROUTER_STATE_TREE_HEADER: str = "next-router-state-tree"
DEFAULT_ROUTER_PREFETCH_HEADER: str = "next-router-prefetch"
DEFAULT_SEGMENT_PREFETCH_HEADER: str = "next-router-segment-prefetch"
DEFAULT_NEXT_URL_HEADER: str = "next-url"

# Only consulted when require_accept_rsc is enabled.
ACCEPT_HEADER: str = "accept"
RSC_CONTENT_TYPE: str = "text/x-component"

# ─── Cache-key hash ──────────────────────────────────────────────────────────

# djb2 seed and output mask (unsigned 32-bit).
DJB2_SEED: int = 5381
UINT32_MASK: int = 0xFFFFFFFF

# Expected _rsc values are the first SHORT_HASH_LENGTH base-36 digits.
SHORT_HASH_LENGTH: int = 5
BASE36_ALPHABET: str = "0123456789abcdefghijklmnopqrstuvwxyz"

# Joined predictor input when all four signal headers are absent.
EMPTY_SIGNAL_SENTINEL: str = ",,,"

# ─── URL handling ────────────────────────────────────────────────────────────

# Relative request URLs are resolved against this base before parsing.
NEUTRAL_BASE_URL: str = "http://localhost/"

# ─── Host adapter ────────────────────────────────────────────────────────────

DEFAULT_BLOCK_STATUS: int = 404

DEBUG_ACTION_HEADER: str = "x-next-rsc-guard-action"
DEBUG_REASON_HEADER: str = "x-next-rsc-guard-reason"
