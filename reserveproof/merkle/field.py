"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
ReserveProof, a product of Garudex Labs

Field element encoding for Merkle leaves.

Every value fed to the hash primitive is an integer in [0, p) for the
hasher's prime modulus p. Conversion rules:
- balance: a non-negative integer maps directly to a field element
- identifier: UTF-8 bytes packed big-endian into an integer

Values are never reduced modulo p. A value outside the field raises
FieldElementError so two distinct identifiers can never collide after
encoding.
"""

import re
from typing import Union

from reserveproof.exceptions import FieldElementError

# BN254 scalar field modulus (the field of circom / snarkjs circuits)
BN254_FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

FieldElement = int

# ASCII digits only
_DECIMAL_DIGITS = re.compile(r"[0-9]+")


def to_field(value: int, modulus: int = BN254_FIELD_MODULUS) -> FieldElement:
    """
    Check that an integer is a canonical field element.

    Args:
        value: Integer to check
        modulus: Field modulus

    Returns:
        The value itself

    Raises:
        FieldElementError: If value is not an int or lies outside [0, modulus)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise FieldElementError(
            f"Field elements must be integers, got {type(value).__name__}"
        )
    if value < 0 or value >= modulus:
        raise FieldElementError(
            f"Value {value} is outside the field [0, {modulus})"
        )
    return value


def parse_balance(balance: Union[int, str]) -> int:
    """
    Parse a balance given as an int or a decimal string.

    Balances are arbitrary precision; they are never narrowed.

    Raises:
        FieldElementError: If the balance is not a non-negative integer
    """
    if isinstance(balance, bool):
        raise FieldElementError("Balance must be an integer, got bool")
    if isinstance(balance, str):
        text = balance.strip()
        if not _DECIMAL_DIGITS.fullmatch(text):
            raise FieldElementError(f"Balance must be a non-negative decimal integer, got {balance!r}")
        return int(text)
    if not isinstance(balance, int):
        raise FieldElementError(
            f"Balance must be an integer, got {type(balance).__name__}"
        )
    if balance < 0:
        raise FieldElementError(f"Balance must be non-negative, got {balance}")
    return balance


def identifier_to_int(identifier: str) -> int:
    """Pack the UTF-8 bytes of an identifier into a big-endian integer."""
    if not isinstance(identifier, str):
        raise FieldElementError(
            f"Identifier must be a string, got {type(identifier).__name__}"
        )
    return int.from_bytes(identifier.encode("utf-8"), byteorder="big", signed=False)


def encode_identifier(identifier: str, modulus: int = BN254_FIELD_MODULUS) -> FieldElement:
    """
    Encode an identifier string as a field element.

    Example:
        >>> encode_identifier("1")
        49
    """
    return to_field(identifier_to_int(identifier), modulus)


def encode_balance(balance: Union[int, str], modulus: int = BN254_FIELD_MODULUS) -> FieldElement:
    """Encode a balance as a field element."""
    return to_field(parse_balance(balance), modulus)
