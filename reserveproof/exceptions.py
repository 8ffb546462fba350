"""
Exception hierarchy for ReserveProof.

All custom exceptions inherit from ReserveProofError base class.

Absent identifiers and failed verification checks are not errors: proof
extraction returns None and verification returns a result object.
"""


class ReserveProofError(Exception):
    """Base exception for all ReserveProof errors."""
    pass


# Accumulator Errors
class AccumulatorError(ReserveProofError):
    """Base exception for Merkle accumulator errors."""
    pass


class EmptyInputError(AccumulatorError):
    """Raised when a tree is built from an empty entry list."""
    pass


class InvalidEntryError(AccumulatorError):
    """Raised when an (identifier, balance) entry is invalid or malformed."""
    pass


class AccumulatorStateError(AccumulatorError):
    """Base exception for operations invoked in the wrong lifecycle state."""
    pass


class NotBuiltError(AccumulatorStateError):
    """Raised when an operation requires a built or finalized tree."""
    pass


class AlreadyBuiltError(AccumulatorStateError):
    """Raised when build is called on an accumulator that is already built."""
    pass


# Hash Primitive Errors
class HashPrimitiveError(ReserveProofError):
    """Base exception for hash primitive errors."""
    pass


class FieldElementError(HashPrimitiveError):
    """Raised when a value cannot be represented as a field element."""
    pass


class UnknownHashFunctionError(HashPrimitiveError):
    """Raised when a hash function name is not registered."""
    pass


# Snapshot and Proof Persistence Errors
class SnapshotError(ReserveProofError):
    """Base exception for snapshot and proof persistence errors."""
    pass


class MalformedSnapshotError(SnapshotError):
    """Raised when snapshot data is missing fields or violates tree invariants."""
    pass


class MalformedProofError(SnapshotError):
    """Raised when proof data is missing fields or malformed."""
    pass


class SnapshotReadError(SnapshotError):
    """Raised when reading a snapshot or proof file fails."""
    pass


class SnapshotWriteError(SnapshotError):
    """Raised when writing a snapshot or proof file fails."""
    pass


# Entry Loading Errors
class EntryLoadError(ReserveProofError):
    """Raised when an entry file cannot be read or parsed."""
    pass


# Configuration Errors
class ConfigurationError(ReserveProofError):
    """Base exception for configuration-related errors."""
    pass


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration is invalid or malformed."""
    pass
