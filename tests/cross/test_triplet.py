"""
Unit tests for target triplets.
"""

from unittest.mock import patch

import pytest

from distrobuilder.core.exceptions import InvalidTripletError
from distrobuilder.cross.triplet import Triplet, default_target_triplet, host_machine


class TestTripletParse:
    """Tests for Triplet.parse."""

    @pytest.mark.parametrize(
        "value",
        [
            "x86_64-pc-linux-musl",
            "aarch64-linux-musl",
            "aarch64-unknown-linux-gnu",
            "x86_64-linux",
            "riscv64-unknown-linux-musl",
        ],
    )
    def test_round_trip(self, value):
        """Test parsing then formatting gives back the input."""
        assert str(Triplet.parse(value)) == value

    def test_four_components(self):
        """Test all four components are recognised."""
        triplet = Triplet.parse("x86_64-pc-linux-musl")

        assert triplet == Triplet("x86_64", "pc", "linux", "musl")

    def test_vendorless(self):
        """Test a known kernel in second place means no vendor."""
        triplet = Triplet.parse("aarch64-linux-musl")

        assert triplet.vendor == ""
        assert triplet.kernel == "linux"
        assert triplet.libc == "musl"

    @pytest.mark.parametrize("value", ["x86_64", "", "x86_64--linux"])
    def test_invalid(self, value):
        """Test malformed triplets raise InvalidTripletError."""
        with pytest.raises(InvalidTripletError):
            Triplet.parse(value)


class TestLoader:
    """Tests for dynamic loader naming."""

    def test_musl_loader(self):
        """Test musl loader names use musl's architecture names."""
        triplet = Triplet.parse("i686-pc-linux-musl")

        assert triplet.dynamic_loader_name == "ld-musl-i386.so.1"
        assert "/lib/ld-musl-i386.so.1" in triplet.dynamic_loader_paths

    def test_x86_64(self):
        """Test the common x86_64 case."""
        assert Triplet.parse("x86_64-linux-musl").dynamic_loader_name == "ld-musl-x86_64.so.1"


class TestHost:
    """Tests for host detection."""

    def test_alias(self):
        """Test platform spellings are normalised."""
        with patch("distrobuilder.cross.triplet.platform.machine", return_value="arm64"):
            assert host_machine() == "aarch64"

    def test_default_target(self):
        """Test the default target is musl Linux for the host machine."""
        with patch("distrobuilder.cross.triplet.platform.machine", return_value="AMD64"):
            assert str(default_target_triplet()) == "x86_64-pc-linux-musl"
