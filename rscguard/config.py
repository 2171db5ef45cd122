"""Option normalization and config loading for rscguard.

Two layers:

  - normalize_options() merges caller-supplied guard options over the nine
    documented defaults and returns an immutable GuardOptions. Keys may be
    snake_case (``on_mismatch``) or the camelCase names used by the JS
    middleware (``onMismatch``). Unknown keys are silently ignored.

  - load_config() reads ``.rscguard/config.yaml`` (or ``~/.rscguard/config.yaml``)
    into a GuardConfig holding guard options plus the adapter-only options.
    Raises SystemExit on parse errors or a missing ``version`` field.
    If no config file is found, returns default values.

Config search order:
  1. ``config_path`` argument (if provided — for testing or explicit override)
  2. RSCGUARD_CONFIG environment variable (if set)
  3. ``.rscguard/config.yaml`` (working directory)
  4. ``~/.rscguard/config.yaml`` (home directory)

Environment variable overrides (applied after the file):
  RSCGUARD_BLOCK_STATUS   — overrides adapter.block_status
  RSCGUARD_DEBUG_HEADERS  — overrides adapter.debug_headers ("true"/"false")
"""

from __future__ import annotations

import dataclasses
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, NoReturn, Optional, Union

import yaml

from rscguard.constants import (
    DEFAULT_BLOCK_STATUS,
    DEFAULT_NEXT_URL_HEADER,
    DEFAULT_ROUTER_PREFETCH_HEADER,
    DEFAULT_ROUTER_STATE_TREE_HEADER,
    DEFAULT_RSC_HEADER,
    DEFAULT_RSC_QUERY_PARAM,
    DEFAULT_SEGMENT_PREFETCH_HEADER,
)
from rscguard.errors import InvalidOptionError
from rscguard.models import Action
from rscguard.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# ─── Option name tables ──────────────────────────────────────────────────────

# camelCase spelling → field name
OPTION_ALIASES: dict[str, str] = {
    "rscQueryParam": "rsc_query_param",
    "rscHeader": "rsc_header",
    "routerStateTreeHeader": "router_state_tree_header",
    "routerPrefetchHeader": "router_prefetch_header",
    "segmentPrefetchHeader": "segment_prefetch_header",
    "nextUrlHeader": "next_url_header",
    "requireAcceptRsc": "require_accept_rsc",
    "onNonFlightWithRsc": "on_non_flight_with_rsc",
    "onMismatch": "on_mismatch",
    "blockStatus": "block_status",
    "debugHeaders": "debug_headers",
}

_NAME_OPTIONS: tuple[str, ...] = (
    "rsc_query_param",
    "rsc_header",
    "router_state_tree_header",
    "router_prefetch_header",
    "segment_prefetch_header",
    "next_url_header",
)
_ACTION_OPTIONS: tuple[str, ...] = ("on_non_flight_with_rsc", "on_mismatch")


def _default_config_paths() -> list[str]:
    return [
        ".rscguard/config.yaml",
        os.path.expanduser("~/.rscguard/config.yaml"),
    ]


# ─── Value coercion ──────────────────────────────────────────────────────────


def _coerce_action(name: str, value: Any) -> Action:
    if isinstance(value, Action):
        return value
    if isinstance(value, str):
        try:
            return Action(value.lower())
        except ValueError:
            pass
    raise InvalidOptionError(
        f"Invalid {name}: {value!r}. Supported values: {[a.value for a in Action]}."
    )


def _coerce_bool(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise InvalidOptionError(f"Invalid {name}: {value!r}. Expected true or false.")
    return value


def _coerce_name(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidOptionError(f"Invalid {name}: {value!r}. Expected a non-empty string.")
    return value


def _canonical_items(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Map aliases to field names and drop None values."""
    out: dict[str, Any] = {}
    for key, value in raw.items():
        if value is None:
            continue
        out[OPTION_ALIASES.get(key, key)] = value
    return out


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class GuardOptions:
    """The nine recognized validation options. Immutable once built."""

    rsc_query_param: str = DEFAULT_RSC_QUERY_PARAM
    rsc_header: str = DEFAULT_RSC_HEADER
    router_state_tree_header: str = DEFAULT_ROUTER_STATE_TREE_HEADER
    router_prefetch_header: str = DEFAULT_ROUTER_PREFETCH_HEADER
    segment_prefetch_header: str = DEFAULT_SEGMENT_PREFETCH_HEADER
    next_url_header: str = DEFAULT_NEXT_URL_HEADER
    # Default off: not every runtime forwards the Flight accept header.
    require_accept_rsc: bool = False
    on_non_flight_with_rsc: Action = Action.STRIP
    on_mismatch: Action = Action.STRIP

    @classmethod
    def defaults(cls) -> "GuardOptions":
        return cls()

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "GuardOptions":
        """Build GuardOptions from a mapping, merging onto defaults.

        Unknown keys are silently ignored; None values keep the default.

        Raises:
            InvalidOptionError: On a value of the wrong kind.
        """
        items = _canonical_items(raw)
        values: dict[str, Any] = {}
        for name in _NAME_OPTIONS:
            if name in items:
                values[name] = _coerce_name(name, items[name])
        if "require_accept_rsc" in items:
            values["require_accept_rsc"] = _coerce_bool(
                "require_accept_rsc", items["require_accept_rsc"]
            )
        for name in _ACTION_OPTIONS:
            if name in items:
                values[name] = _coerce_action(name, items[name])
        return cls(**values)


@dataclass(frozen=True)
class AdapterConfig:
    """Options only the host adapter reads."""

    block_status: int = DEFAULT_BLOCK_STATUS
    debug_headers: bool = False

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "AdapterConfig":
        items = _canonical_items(raw)
        block_status = items.get("block_status", DEFAULT_BLOCK_STATUS)
        if (
            isinstance(block_status, bool)
            or not isinstance(block_status, int)
            or not 100 <= block_status <= 599
        ):
            raise InvalidOptionError(
                f"Invalid block_status: {block_status!r}. Expected an HTTP status code (100-599)."
            )
        return cls(
            block_status=block_status,
            debug_headers=_coerce_bool("debug_headers", items.get("debug_headers", False)),
        )


@dataclass(frozen=True)
class GuardConfig:
    """Root configuration object populated from .rscguard/config.yaml.

    All fields have safe defaults — the guard runs without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    guard: GuardOptions = field(default_factory=GuardOptions)
    adapter: AdapterConfig = field(default_factory=AdapterConfig)
    path: Optional[str] = None

    @classmethod
    def defaults(cls) -> "GuardConfig":
        return cls()

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], path: Optional[str] = None) -> "GuardConfig":
        """Construct GuardConfig from a parsed YAML mapping.

        Raises:
            InvalidOptionError: On an invalid option value or a non-mapping section.
        """
        guard_raw = raw.get("guard") or {}
        adapter_raw = raw.get("adapter") or {}
        for section, value in (("guard", guard_raw), ("adapter", adapter_raw)):
            if not isinstance(value, Mapping):
                raise InvalidOptionError(f"Section '{section}' must be a mapping.")
        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            guard=GuardOptions.from_dict(guard_raw),
            adapter=AdapterConfig.from_dict(adapter_raw),
            path=path,
        )


OptionsInput = Union[None, GuardOptions, Mapping[str, Any]]


def normalize_options(options: OptionsInput = None, **overrides: Any) -> GuardOptions:
    """Merge ``options`` and keyword ``overrides`` over the documented defaults.

    Args:
        options:   None, an existing GuardOptions, or a mapping of option names
                   (snake_case or camelCase) to values.
        overrides: Extra options; they win over ``options``.

    Returns:
        A fully-populated, immutable GuardOptions.

    Raises:
        InvalidOptionError: On a value of the wrong kind.
        TypeError: If ``options`` is neither None, GuardOptions, nor a mapping.
    """
    if isinstance(options, GuardOptions):
        if not overrides:
            return options
        raw: dict[str, Any] = {
            f.name: getattr(options, f.name) for f in dataclasses.fields(options)
        }
    elif options is None:
        raw = {}
    elif isinstance(options, Mapping):
        raw = dict(options)
    else:
        raise TypeError(
            f"options must be a GuardOptions or a mapping, got {type(options).__name__}"
        )
    raw.update(overrides)
    return GuardOptions.from_dict(raw)


# ─── Config loading ───────────────────────────────────────────────────────────


def _fail(msg: str) -> NoReturn:
    print(msg, file=sys.stderr)
    raise SystemExit(1)


def load_config(config_path: Optional[str] = None) -> GuardConfig:
    """Load and validate rscguard configuration.

    If no file is found at any search path, returns GuardConfig.defaults()
    (not an error). If a file is found but invalid, writes the error to stderr
    and raises SystemExit(1).

    Raises:
        SystemExit(1): On YAML parse error, non-mapping document, missing or
                       unsupported ``version``, invalid option values, or an
                       invalid RSCGUARD_BLOCK_STATUS / RSCGUARD_DEBUG_HEADERS.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("RSCGUARD_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(_default_config_paths())

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        return _apply_env_overrides(GuardConfig.defaults())

    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "rscguard refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _fail(f"CONFIG ERROR: Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _fail(
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _fail(
            f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    version = raw.get("version")
    if version is None:
        _fail(
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _fail(
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    try:
        config = GuardConfig.from_dict(raw, path=found_path)
    except InvalidOptionError as exc:
        _fail(f"CONFIG ERROR: {found_path}: {exc}")

    config = _apply_env_overrides(config)

    if config.guard.on_mismatch is Action.BLOCK or config.guard.on_non_flight_with_rsc is Action.BLOCK:
        logger.warning(
            "Blocking on _rsc mismatches may reject legitimate clients after a deploy; "
            "_rsc is a cache key, not a security token.",
            on_mismatch=config.guard.on_mismatch.value,
            on_non_flight_with_rsc=config.guard.on_non_flight_with_rsc.value,
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        on_mismatch=config.guard.on_mismatch.value,
        on_non_flight_with_rsc=config.guard.on_non_flight_with_rsc.value,
    )
    return config


def _apply_env_overrides(config: GuardConfig) -> GuardConfig:
    """Return ``config`` with RSCGUARD_BLOCK_STATUS / RSCGUARD_DEBUG_HEADERS applied.

    Raises:
        SystemExit(1): If either variable is set to an invalid value.
    """
    adapter = config.adapter

    env_status = os.environ.get("RSCGUARD_BLOCK_STATUS")
    if env_status is not None:
        try:
            adapter = AdapterConfig.from_dict(
                {"block_status": int(env_status), "debug_headers": adapter.debug_headers}
            )
        except ValueError:
            _fail(
                "CONFIG ERROR: RSCGUARD_BLOCK_STATUS environment variable is not a valid "
                f"HTTP status code: '{env_status}'"
            )

    env_debug = os.environ.get("RSCGUARD_DEBUG_HEADERS")
    if env_debug is not None:
        lowered = env_debug.strip().lower()
        if lowered not in ("true", "false"):
            _fail(
                "CONFIG ERROR: RSCGUARD_DEBUG_HEADERS must be 'true' or 'false', "
                f"got '{env_debug}'"
            )
        adapter = dataclasses.replace(adapter, debug_headers=lowered == "true")

    if adapter is config.adapter:
        return config
    return dataclasses.replace(config, adapter=adapter)
