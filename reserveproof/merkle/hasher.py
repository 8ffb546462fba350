"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
ReserveProof, a product of Garudex Labs

Field hash primitive with pluggable backend support.

The accumulator only needs a deterministic, collision-resistant
Hash(elements) -> FieldElement over a fixed prime field, always called
with two elements. This module provides:
- FieldHasher: abstract capability the tree and proof code depend on
- Sha256FieldHasher / Sha3FieldHasher: digest-to-field hashers over BN254
- get_hasher / create_hasher: registry lookup and config-driven factory

Digest-to-field hashers encode each element as 32 bytes big-endian, hash
the concatenation and reduce the digest modulo p.
"""

import hashlib
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Sequence

from reserveproof.exceptions import FieldElementError, UnknownHashFunctionError
from reserveproof.merkle.field import BN254_FIELD_MODULUS, FieldElement, to_field

ELEMENT_BYTES = 32


class FieldHasher(ABC):
    """
    Abstract base class for the field hash primitive.

    Implementations must be deterministic and must reject inputs that are
    not field elements instead of reducing them.
    """

    name: str = ""
    modulus: int = BN254_FIELD_MODULUS

    @abstractmethod
    def hash(self, elements: Sequence[FieldElement]) -> FieldElement:
        """
        Hash a sequence of field elements to a single field element.

        Raises:
            FieldElementError: If any element is outside the field
        """
        pass

    def hash_pair(self, left: FieldElement, right: FieldElement) -> FieldElement:
        """Combine two child hashes; argument order is significant."""
        return self.hash([left, right])

    def __call__(self, elements: Sequence[FieldElement]) -> FieldElement:
        return self.hash(elements)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class DigestFieldHasher(FieldHasher):
    """Field hasher built on a hashlib digest constructor."""

    def __init__(self, name: str, digest: Callable, modulus: int = BN254_FIELD_MODULUS):
        self.name = name
        self._digest = digest
        self.modulus = modulus

    def hash(self, elements: Sequence[FieldElement]) -> FieldElement:
        if not elements:
            raise FieldElementError("Cannot hash an empty element sequence")
        h = self._digest()
        for element in elements:
            # Fixed-width encoding keeps (a, b) and (a', b') with a||b == a'||b' distinct
            value = to_field(element, self.modulus)
            h.update(value.to_bytes(ELEMENT_BYTES, byteorder="big", signed=False))
        return int.from_bytes(h.digest(), byteorder="big") % self.modulus


class Sha256FieldHasher(DigestFieldHasher):
    """SHA-256 digest reduced into the BN254 scalar field."""

    def __init__(self, modulus: int = BN254_FIELD_MODULUS):
        super().__init__("sha256", hashlib.sha256, modulus)


class Sha3FieldHasher(DigestFieldHasher):
    """SHA3-256 digest reduced into the BN254 scalar field."""

    def __init__(self, modulus: int = BN254_FIELD_MODULUS):
        super().__init__("sha3_256", hashlib.sha3_256, modulus)


_HASHERS: Dict[str, Callable[[], FieldHasher]] = {
    "sha256": Sha256FieldHasher,
    "sha3_256": Sha3FieldHasher,
}

DEFAULT_HASH_FUNCTION = "sha256"


def available_hashers() -> List[str]:
    """Names of registered hash functions."""
    return sorted(_HASHERS)


def register_hasher(name: str, factory: Callable[[], FieldHasher]) -> None:
    """
    Register a hasher factory under a name.

    Snapshots record the hasher name, so a custom primitive (e.g. a
    Poseidon binding) must be registered before its snapshots are loaded.
    """
    _HASHERS[name] = factory


def get_hasher(name: str = DEFAULT_HASH_FUNCTION) -> FieldHasher:
    """
    Return a ready-to-use hasher by name.

    Raises:
        UnknownHashFunctionError: If the name is not registered
    """
    try:
        factory = _HASHERS[name]
    except KeyError:
        raise UnknownHashFunctionError(
            f"Unknown hash function '{name}', expected one of {available_hashers()}"
        ) from None
    return factory()


def create_hasher(config=None) -> FieldHasher:
    """
    Factory function to create the hasher named by configuration.

    Args:
        config: HashConfig (or any object with a ``function`` attribute);
            None selects the default.

    Returns:
        FieldHasher implementation
    """
    name = getattr(config, "function", None) or DEFAULT_HASH_FUNCTION
    return get_hasher(name)
