"""
Unit tests for field element encoding.
"""

import pytest
from hypothesis import given, strategies as st

from reserveproof.exceptions import FieldElementError, HashPrimitiveError
from reserveproof.merkle.field import (
    BN254_FIELD_MODULUS,
    encode_balance,
    encode_identifier,
    identifier_to_int,
    parse_balance,
    to_field,
)


class TestToField:
    """Test canonical field element checks."""

    def test_zero_and_max_accepted(self):
        assert to_field(0) == 0
        assert to_field(BN254_FIELD_MODULUS - 1) == BN254_FIELD_MODULUS - 1

    def test_modulus_rejected(self):
        with pytest.raises(FieldElementError, match="outside the field"):
            to_field(BN254_FIELD_MODULUS)

    def test_negative_rejected(self):
        with pytest.raises(FieldElementError):
            to_field(-1)

    def test_custom_modulus(self):
        assert to_field(6, modulus=7) == 6
        with pytest.raises(FieldElementError):
            to_field(7, modulus=7)

    @pytest.mark.parametrize("value", [True, 1.0, "1", None])
    def test_non_integers_rejected(self, value):
        with pytest.raises(FieldElementError, match="must be integers"):
            to_field(value)

    def test_field_error_is_hash_primitive_error(self):
        with pytest.raises(HashPrimitiveError):
            to_field(-5)


class TestParseBalance:
    """Test balance parsing."""

    def test_int_balance(self):
        assert parse_balance(5000) == 5000

    def test_decimal_string_balance(self):
        assert parse_balance("4000") == 4000
        assert parse_balance(" 12 ") == 12

    def test_large_balance_not_narrowed(self):
        big = 2 ** 200 + 7
        assert parse_balance(str(big)) == big

    @pytest.mark.parametrize("value", [-1, "-5", "1.5", "abc", "", 3.0, True, None, "²", "٣", "1_000"])
    def test_invalid_balances_rejected(self, value):
        with pytest.raises(FieldElementError):
            parse_balance(value)


class TestEncoding:
    """Test identifier and balance encoding."""

    def test_single_character_identifier(self):
        assert encode_identifier("1") == 49

    def test_identifier_big_endian(self):
        assert encode_identifier("ab") == 0x6162

    def test_empty_identifier_is_zero(self):
        assert encode_identifier("") == 0

    def test_utf8_identifier(self):
        assert identifier_to_int("é") == 0xC3A9

    def test_identifier_too_large_for_field(self):
        with pytest.raises(FieldElementError):
            encode_identifier("\xff" * 40)

    def test_non_string_identifier_rejected(self):
        with pytest.raises(FieldElementError, match="must be a string"):
            encode_identifier(1)

    def test_balance_outside_field_rejected(self):
        with pytest.raises(FieldElementError):
            encode_balance(BN254_FIELD_MODULUS)

    def test_balance_encoding(self):
        assert encode_balance("5000") == 5000

    @given(st.text(alphabet=st.characters(max_codepoint=127), max_size=31))
    def test_short_ascii_identifiers_are_distinct_field_elements(self, identifier):
        value = encode_identifier(identifier)
        assert 0 <= value < BN254_FIELD_MODULUS
        length = (value.bit_length() + 7) // 8
        assert value.to_bytes(length, "big").lstrip(b"\x00") == identifier.encode("utf-8").lstrip(b"\x00")
