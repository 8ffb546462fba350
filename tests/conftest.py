"""
Pytest configuration and shared fixtures for ReserveProof tests.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Generator, List, Tuple

import pytest


# Entries used throughout the documentation examples
SAMPLE_ENTRIES: List[Tuple[str, int]] = [
    ("1", 5000),
    ("2", 3000),
    ("3", 4000),
    ("4", 6000),
]

SAMPLE_TIMESTAMP = 1700000000000


def create_test_config_content(temp_dir: Path, **overrides) -> str:
    """
    Generate test configuration YAML content pointing storage at temp_dir.

    Args:
        temp_dir: Temporary directory for storage paths.
        **overrides: Replacement values for hash_function, parallel_threshold
            or log_level.

    Returns:
        YAML configuration content as string.
    """
    return f"""
storage:
  tree_path: {temp_dir}/merkle-tree.json
  proof_dir: {temp_dir}/proofs
  backup_count: 2

hash:
  function: {overrides.get('hash_function', 'sha256')}

logging:
  level: {overrides.get('log_level', 'WARNING')}
  file: {temp_dir}/reserveproof.log
  format: console

performance:
  parallel_threshold: {overrides.get('parallel_threshold', 1024)}
  max_workers: 2
  max_retries: 1
"""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path to temporary directory that is cleaned up after test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_entries() -> List[Tuple[str, int]]:
    return list(SAMPLE_ENTRIES)


@pytest.fixture
def sample_config_path(temp_dir: Path) -> Path:
    """
    Create a sample configuration file for testing.

    Args:
        temp_dir: Temporary directory fixture.

    Returns:
        Path to sample config file.
    """
    config_path = temp_dir / "config.yaml"
    config_path.write_text(create_test_config_content(temp_dir))
    return config_path


@pytest.fixture
def sample_entries_path(temp_dir: Path, sample_entries) -> Path:
    """Write the sample entries to a JSON entry file."""
    entries_path = temp_dir / "balances.json"
    entries_path.write_text(json.dumps([[identifier, balance] for identifier, balance in sample_entries]))
    return entries_path


@pytest.fixture
def finalized_tree(sample_entries):
    """Sample tree built and finalized at SAMPLE_TIMESTAMP."""
    from reserveproof.merkle import MerkleAccumulator

    tree = MerkleAccumulator().build(sample_entries)
    tree.finalize(SAMPLE_TIMESTAMP)
    return tree


# Hypothesis settings for property-based tests
from hypothesis import settings, Verbosity

# Register custom profile for ReserveProof tests
settings.register_profile("reserveproof", max_examples=100, verbosity=Verbosity.normal, deadline=None)
settings.register_profile("reserveproof-ci", max_examples=1000, verbosity=Verbosity.verbose, deadline=None)
settings.register_profile("reserveproof-dev", max_examples=10, verbosity=Verbosity.verbose, deadline=None)

# Load profile from environment or use default
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "reserveproof"))
