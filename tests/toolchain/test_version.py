# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for version parsing and the minimum-version predicate.
"""

import pytest

from stackup.toolchain.version import extract_version, is_at_least, parse_version


class TestIsAtLeast:
    @pytest.mark.parametrize(
        ("observed", "minimum", "expected"),
        [
            ("11.5.0", "11.5", True),
            ("9.9", "11.5", False),
            ("1.0.0", "1.0.0", True),
            ("11.5", "9.9", True),
            ("3.26", "3.26.1", False),
            ("4.3.0.1", "4.3", True),
            ("0.29.2", "1.7.0", False),
            ("1.10", "1.9", True),
        ],
    )
    def test_component_wise_numeric(self, observed: str, minimum: str, expected: bool) -> None:
        assert is_at_least(observed, minimum) is expected

    @pytest.mark.parametrize("observed", [None, "", "unknown", "v1.2", "1..2", "1.2.3.4.5", "1.2-rc1"])
    def test_unparsable_observed_fails_closed(self, observed) -> None:  # type: ignore[no-untyped-def]
        assert is_at_least(observed, "1.0") is False

    def test_invalid_minimum_raises(self) -> None:
        with pytest.raises(ValueError, match="Invalid minimum version"):
            is_at_least("1.0", "latest")


class TestParseVersion:
    def test_parses_components(self) -> None:
        assert parse_version("3.28.1") == (3, 28, 1)

    def test_surrounding_whitespace_is_ignored(self) -> None:
        assert parse_version(" 4.3\n") == (4, 3)

    def test_rejects_non_numeric(self) -> None:
        assert parse_version("4.x") is None


class TestExtractVersion:
    @pytest.mark.parametrize(
        ("output", "expected"),
        [
            ("GNU Make 4.3\nBuilt for x86_64-pc-linux-gnu", "4.3"),
            ("gcc (Ubuntu 11.4.0-1ubuntu1~22.04) 11.4.0\n", "11.4.0"),
            ("cmake version 3.28.1\n\nCMake suite maintained", "3.28.1"),
            ("1.8.1\n", "1.8.1"),
        ],
    )
    def test_first_version_token(self, output: str, expected: str) -> None:
        assert extract_version(output) == expected

    def test_no_version_in_output(self) -> None:
        assert extract_version("command not found") is None

    def test_empty_output(self) -> None:
        assert extract_version("") is None
        assert extract_version(None) is None
