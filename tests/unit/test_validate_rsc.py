"""Unit tests for validate_rsc() — the pass / strip / block decision tree.

Covers every branch:
  - no _rsc                         → pass, fast path
  - _rsc present, not Flight        → on_non_flight_with_rsc
  - Flight, expected value empty    → pass (fail-open)
  - Flight, _rsc empty              → on_mismatch (missing value)
  - Flight, _rsc == expected        → pass
  - Flight, _rsc != expected        → on_mismatch
plus the result invariants and ValidationResult.as_dict().
"""

from __future__ import annotations

import pytest

from rscguard.errors import InvalidOptionError, InvalidURLError
from rscguard.models import Action, Reason, ValidationResult
from rscguard.rsc import compute_expected_rsc, validate_rsc

EXPECTED_RSC = "mg7gk"


def _assert_invariants(result: ValidationResult) -> None:
    if result.expected_rsc is not None:
        assert result.is_flight
    assert (result.stripped_url is not None) == (result.action is Action.STRIP)
    assert result.ok == (result.action is not Action.BLOCK)


# ─── No _rsc: fast path ───────────────────────────────────────────────────────


class TestNoRscParam:

    def test_pass_when_rsc_absent(self) -> None:
        headers = {"rsc": "1", "next-router-state-tree": "{}"}
        result = validate_rsc("/x?foo=1", headers)
        assert result == ValidationResult(
            has_rsc_param=False, is_flight=False, ok=True, action=Action.PASS
        )
        assert result.reason is None

    @pytest.mark.parametrize(
        "options",
        [None, {"on_mismatch": "block", "on_non_flight_with_rsc": "block"}, {"require_accept_rsc": True}],
    )
    def test_fast_path_ignores_headers_and_options(self, options, flight_headers) -> None:
        for headers in ({}, flight_headers, [("x", "y")]):
            result = validate_rsc("https://example.com/x?foo=1&rsc=1", headers, options)
            assert result.action is Action.PASS
            assert result.ok is True
            assert result.is_flight is False
            assert result.has_rsc_param is False

    def test_headers_not_inspected_on_fast_path(self) -> None:
        """Any object is accepted as headers when _rsc is absent."""
        result = validate_rsc("/x", object())
        assert result.action is Action.PASS

    def test_custom_param_name(self, flight_headers) -> None:
        result = validate_rsc("/x?_rsc=WRONG", flight_headers, {"rsc_query_param": "cb"})
        assert result.has_rsc_param is False
        assert result.action is Action.PASS


# ─── _rsc present, not Flight ─────────────────────────────────────────────────


class TestNonFlightWithRsc:

    def test_strip_by_default(self) -> None:
        result = validate_rsc("https://example.com/x?_rsc=abc&foo=1", {"rsc": "1"})
        assert result.action is Action.STRIP
        assert result.ok is True
        assert result.is_flight is False
        assert result.has_rsc_param is True
        assert result.provided_rsc == "abc"
        assert result.expected_rsc is None
        assert result.reason is Reason.RSC_QUERY_PRESENT_BUT_NOT_FLIGHT_REQUEST
        assert result.stripped_url == "/x?foo=1"
        _assert_invariants(result)

    def test_block_when_configured(self) -> None:
        result = validate_rsc("/x?_rsc=abc", {}, {"onNonFlightWithRsc": "block"})
        assert result.action is Action.BLOCK
        assert result.ok is False
        assert result.stripped_url is None
        assert result.reason is Reason.RSC_QUERY_PRESENT_BUT_NOT_FLIGHT_REQUEST
        _assert_invariants(result)

    def test_pass_when_configured(self) -> None:
        result = validate_rsc("/x?_rsc=abc", {}, {"on_non_flight_with_rsc": Action.PASS})
        assert result.action is Action.PASS
        assert result.ok is True
        assert result.reason is Reason.RSC_QUERY_PRESENT_BUT_NOT_FLIGHT_REQUEST
        _assert_invariants(result)

    def test_accept_requirement_makes_request_non_flight(self, flight_headers) -> None:
        url = f"/x?_rsc={EXPECTED_RSC}"
        result = validate_rsc(url, flight_headers, {"require_accept_rsc": True})
        assert result.is_flight is False
        assert result.action is Action.STRIP

        flight_headers["accept"] = "text/x-component"
        result = validate_rsc(url, flight_headers, {"require_accept_rsc": True})
        assert result.is_flight is True
        assert result.action is Action.PASS


# ─── Flight, expected value empty ─────────────────────────────────────────────


class TestFailOpen:

    def test_state_tree_always_feeds_predictor(self) -> None:
        """The classifier requires a non-empty state tree, which is also a hash
        input, so a default-configured Flight request always has signal."""
        headers = [("rsc", "1"), ("next-router-state-tree", "{}")]
        result = validate_rsc("/x?_rsc=anything", headers)
        assert result.expected_rsc == compute_expected_rsc(headers)
        assert result.expected_rsc != ""

    def test_empty_signal_passes(self, monkeypatch) -> None:
        """Flight request whose four predictor headers are all absent passes."""
        import rscguard.rsc as rsc_module

        monkeypatch.setattr(rsc_module, "_expected_rsc", lambda bag, options: "")
        headers = {"rsc": "1", "next-router-state-tree": "{}"}
        for value in ("anything", "", EXPECTED_RSC):
            result = validate_rsc(
                f"/x?_rsc={value}", headers, {"on_mismatch": "block"}
            )
            assert result.action is Action.PASS
            assert result.ok is True
            assert result.is_flight is True
            assert result.expected_rsc == ""
            assert result.reason is Reason.FLIGHT_REQUEST_BUT_EXPECTED_RSC_EMPTY
            _assert_invariants(result)


# ─── Flight, _rsc empty ───────────────────────────────────────────────────────


class TestMissingValue:

    @pytest.mark.parametrize("url", ["/x?_rsc=&foo=1", "/x?_rsc&foo=1"])
    def test_empty_value_strips(self, url, flight_headers) -> None:
        result = validate_rsc(url, flight_headers)
        assert result.action is Action.STRIP
        assert result.reason is Reason.FLIGHT_REQUEST_MISSING_RSC_VALUE
        assert result.provided_rsc == ""
        assert result.expected_rsc == EXPECTED_RSC
        assert result.stripped_url == "/x?foo=1"
        _assert_invariants(result)

    def test_empty_value_blocks_when_configured(self, flight_headers) -> None:
        result = validate_rsc("/x?_rsc=", flight_headers, {"on_mismatch": "block"})
        assert result.action is Action.BLOCK
        assert result.ok is False
        assert result.reason is Reason.FLIGHT_REQUEST_MISSING_RSC_VALUE
        _assert_invariants(result)


# ─── Flight, exact match ──────────────────────────────────────────────────────


class TestExactMatch:

    def test_pass_when_rsc_matches(self, flight_headers) -> None:
        expected = compute_expected_rsc(flight_headers)
        result = validate_rsc(f"https://example.com/x?_rsc={expected}&foo=1", flight_headers)
        assert result.action is Action.PASS
        assert result.ok is True
        assert result.is_flight is True
        assert result.expected_rsc == expected
        assert result.provided_rsc == expected
        assert result.reason is None
        assert result.stripped_url is None

    def test_match_is_case_sensitive(self, flight_headers) -> None:
        result = validate_rsc(f"/x?_rsc={EXPECTED_RSC.upper()}", flight_headers)
        assert result.action is Action.STRIP
        assert result.reason is Reason.FLIGHT_REQUEST_RSC_MISMATCH

    def test_first_value_is_compared(self, flight_headers) -> None:
        result = validate_rsc(f"/x?_rsc={EXPECTED_RSC}&_rsc=WRONG", flight_headers)
        assert result.action is Action.PASS
        assert result.provided_rsc == EXPECTED_RSC


# ─── Flight, mismatch ─────────────────────────────────────────────────────────


class TestMismatch:

    def test_strip_when_rsc_mismatches(self, flight_headers) -> None:
        result = validate_rsc("/x?_rsc=WRONG&foo=1", flight_headers, {"on_mismatch": "strip"})
        assert result.action is Action.STRIP
        assert result.ok is True
        assert result.reason is Reason.FLIGHT_REQUEST_RSC_MISMATCH
        assert result.stripped_url == "/x?foo=1"
        assert result.expected_rsc == EXPECTED_RSC
        assert result.provided_rsc == "WRONG"
        _assert_invariants(result)

    def test_block_when_configured(self, flight_headers) -> None:
        result = validate_rsc("/x?_rsc=WRONG", flight_headers, {"onMismatch": "block"})
        assert result.action is Action.BLOCK
        assert result.ok is False
        assert result.stripped_url is None
        _assert_invariants(result)

    def test_pass_when_configured(self, flight_headers) -> None:
        result = validate_rsc("/x?_rsc=WRONG", flight_headers, {"on_mismatch": "pass"})
        assert result.action is Action.PASS
        assert result.ok is True
        assert result.reason is Reason.FLIGHT_REQUEST_RSC_MISMATCH
        _assert_invariants(result)

    def test_stripped_url_keeps_fragment_and_other_params(self, flight_headers) -> None:
        result = validate_rsc("/p?a=1&_rsc=WRONG&b=%2F#top", flight_headers)
        assert result.stripped_url == "/p?a=1&b=%2F#top"


# ─── Errors ───────────────────────────────────────────────────────────────────


class TestErrors:

    def test_malformed_url_propagates(self, flight_headers) -> None:
        with pytest.raises(InvalidURLError):
            validate_rsc("http://exa mple.com/x?_rsc=1", flight_headers)

    def test_malformed_url_without_param_still_raises(self) -> None:
        with pytest.raises(InvalidURLError):
            validate_rsc("http://", {})

    def test_invalid_action_option_raises(self, flight_headers) -> None:
        with pytest.raises(InvalidOptionError):
            validate_rsc("/x?_rsc=1", flight_headers, {"on_mismatch": "drop"})

    def test_unknown_options_ignored(self, flight_headers) -> None:
        result = validate_rsc("/x?_rsc=WRONG", flight_headers, {"strictMode": True})
        assert result.action is Action.STRIP


# ─── as_dict() ────────────────────────────────────────────────────────────────


class TestAsDict:

    def test_fast_path_dict(self) -> None:
        assert validate_rsc("/x", {}).as_dict() == {
            "hasRscParam": False,
            "isFlight": False,
            "ok": True,
            "action": "pass",
        }

    def test_mismatch_dict(self, flight_headers) -> None:
        assert validate_rsc("/x?_rsc=WRONG&foo=1", flight_headers).as_dict() == {
            "hasRscParam": True,
            "isFlight": True,
            "ok": True,
            "action": "strip",
            "expectedRsc": EXPECTED_RSC,
            "providedRsc": "WRONG",
            "reason": "flight_request_rsc_mismatch",
            "strippedUrl": "/x?foo=1",
        }
