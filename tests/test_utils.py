"""Tests for utility functions."""

import pytest

from cf_tunnel.common.utils import parse_port, split_list, tail_lines, validate_port


class TestValidatePort:
    """Test port validation function."""

    def test_valid_ports(self):
        """Test validation of valid ports."""
        validate_port(1, "Test port")
        validate_port(80, "HTTP port")
        validate_port(65535, "Max port")

    def test_invalid_ports(self):
        """Test validation of out-of-range ports."""
        with pytest.raises(ValueError, match="Test port must be between 1 and 65535"):
            validate_port(0, "Test port")

        with pytest.raises(ValueError, match="Test port must be between 1 and 65535"):
            validate_port(65536, "Test port")

    def test_non_integer_ports(self):
        """Test validation of non-integer ports."""
        with pytest.raises(ValueError):
            validate_port("80")  # type: ignore[arg-type]


class TestParsePort:
    """Test parse_port."""

    @pytest.mark.parametrize("value,expected", [("1", 1), ("3000", 3000), ("65535", 65535)])
    def test_valid(self, value, expected):
        assert parse_port(value) == expected

    @pytest.mark.parametrize("value", ["", "abc", "-1", "0", "70000", "80a", " 80", "123456"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_port(value)


class TestSplitList:
    """Test split_list."""

    def test_trims_and_drops_empty_tokens(self):
        assert split_list(" web:3000 ,, api ,") == ["web:3000", "api"]

    def test_empty_input(self):
        assert split_list("") == []
        assert split_list(" , ,") == []


def test_tail_lines():
    text = "\n".join(f"line {i}" for i in range(100))
    assert tail_lines(text, 2) == "line 98\nline 99"
    assert tail_lines("short", 50) == "short"
