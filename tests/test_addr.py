"""Tests for host:port parsing."""

from __future__ import annotations

import pytest

from blockproxy.core.addr import (
    join_host_port,
    normalize_target,
    resolve_dial_address,
    same_host_port,
    split_host_port,
)
from blockproxy.core.exceptions import AddressError


class TestSplitHostPort:
    """Tests for split_host_port."""

    @pytest.mark.parametrize(
        ("hostport", "expected"),
        [
            ("example.com:443", ("example.com", "443")),
            ("127.0.0.1:8080", ("127.0.0.1", "8080")),
            ("[::1]:443", ("::1", "443")),
            ("[fe80::1%eth0]:22", ("fe80::1%eth0", "22")),
            ("example.com:https", ("example.com", "https")),
            (":443", ("", "443")),
            ("example.com:", ("example.com", "")),
        ],
    )
    def test_valid(self, hostport, expected):
        """Test addresses that split."""
        assert split_host_port(hostport) == expected

    @pytest.mark.parametrize(
        ("hostport", "reason"),
        [
            ("example.com", "missing port in address"),
            ("", "missing port in address"),
            ("::1", "too many colons in address"),
            ("a:b:443", "too many colons in address"),
            ("[::1]", "missing port in address"),
            ("[::1", "missing ']' in address"),
            ("[::1]x:443", "missing port in address"),
            ("[::1]:443]", "unexpected ']' in address"),
            ("ex[ample.com:443", "unexpected '[' in address"),
            ("example]com:443", "unexpected ']' in address"),
        ],
    )
    def test_invalid(self, hostport, reason):
        """Test addresses that do not split."""
        with pytest.raises(AddressError) as exc_info:
            split_host_port(hostport)
        assert exc_info.value.reason == reason
        assert exc_info.value.status_code == 400

    def test_address_error_is_value_error(self):
        """Test that AddressError can be caught as ValueError."""
        with pytest.raises(ValueError):
            split_host_port("nope")


class TestJoinHostPort:
    """Tests for join_host_port."""

    def test_hostname(self):
        assert join_host_port("example.com", "443") == "example.com:443"

    def test_int_port(self):
        assert join_host_port("10.0.0.1", 8080) == "10.0.0.1:8080"

    def test_ipv6_is_bracketed(self):
        assert join_host_port("::1", "443") == "[::1]:443"


class TestSameHostPort:
    """Tests for component-wise authority comparison."""

    def test_identical(self):
        assert same_host_port("example.com:443", "example.com:443") is True

    def test_port_differs(self):
        assert same_host_port("example.com:80", "example.com:443") is False

    def test_host_differs(self):
        assert same_host_port("example.org:443", "example.com:443") is False

    def test_no_case_folding(self):
        """Test that host comparison is exact."""
        assert same_host_port("EXAMPLE.com:443", "example.com:443") is False

    def test_no_port_normalization(self):
        """Test that ports are compared as strings."""
        assert same_host_port("example.com:0443", "example.com:443") is False
        assert same_host_port("example.com:https", "example.com:443") is False

    def test_bracket_forms_compare_by_host(self):
        assert same_host_port("[::1]:443", "[::1]:443") is True

    def test_parse_failure_propagates(self):
        with pytest.raises(AddressError):
            same_host_port("example.com", "example.com:443")
        with pytest.raises(AddressError):
            same_host_port("example.com:443", "example.com")


class TestNormalizeTarget:
    """Tests for normalize_target."""

    def test_keeps_explicit_port(self):
        assert normalize_target("example.com:8443") == "example.com:8443"

    def test_defaults_port_to_443(self):
        assert normalize_target("example.com") == "example.com:443"

    def test_bracketed_ipv6_without_port(self):
        assert normalize_target("[::1]") == "[::1]:443"

    def test_strips_whitespace(self):
        assert normalize_target("  example.com:80 ") == "example.com:80"

    def test_rejects_empty_host(self):
        with pytest.raises(AddressError):
            normalize_target(":443")

    def test_rejects_empty_port(self):
        with pytest.raises(AddressError):
            normalize_target("example.com:")

    def test_rejects_unbracketed_ipv6(self):
        """Test that appending a port cannot fix a bare IPv6 literal."""
        with pytest.raises(AddressError):
            normalize_target("::1")


class TestResolveDialAddress:
    """Tests for resolve_dial_address."""

    def test_bare_ip_gets_default_port(self):
        assert resolve_dial_address("10.0.0.5", "443") == "10.0.0.5:443"

    def test_own_port_kept(self):
        assert resolve_dial_address("10.0.0.5:9443", "443") == "10.0.0.5:9443"

    def test_ipv6_is_bracketed(self):
        assert resolve_dial_address("2001:db8::1", "443") == "[2001:db8::1]:443"

    @pytest.mark.parametrize("target_ip", ["10.0.0.5]", "[::1", ":9443", "10.0.0.5:"])
    def test_rejects_unusable_address(self, target_ip):
        with pytest.raises(AddressError):
            resolve_dial_address(target_ip, "443")
