"""
Unit tests for entry file loading.
"""

import json
from pathlib import Path

import pytest

from reserveproof.exceptions import EntryLoadError
from reserveproof.merkle.entries import load_entries


class TestJsonEntries:
    """Test JSON entry files."""

    def test_pairs(self, sample_entries_path: Path, sample_entries):
        assert load_entries(sample_entries_path) == sample_entries

    def test_objects(self, temp_dir: Path):
        path = temp_dir / "balances.json"
        path.write_text(json.dumps([
            {"identifier": "alice", "balance": "100"},
            {"identifier": "bob", "balance": 250},
        ]))
        assert load_entries(path) == [("alice", 100), ("bob", 250)]

    def test_numeric_identifiers_become_strings(self, temp_dir: Path):
        path = temp_dir / "balances.json"
        path.write_text(json.dumps([[1, 5210], [2, 1200]]))
        assert load_entries(path) == [("1", 5210), ("2", 1200)]

    def test_large_balances_preserved(self, temp_dir: Path):
        path = temp_dir / "balances.json"
        path.write_text('[["whale", 123456789012345678901234567890]]')
        assert load_entries(path) == [("whale", 123456789012345678901234567890)]

    def test_not_a_list(self, temp_dir: Path):
        path = temp_dir / "balances.json"
        path.write_text(json.dumps({"alice": 100}))
        with pytest.raises(EntryLoadError, match="JSON list"):
            load_entries(path)

    def test_invalid_json(self, temp_dir: Path):
        path = temp_dir / "balances.json"
        path.write_text("[[")
        with pytest.raises(EntryLoadError, match="Invalid JSON"):
            load_entries(path)

    @pytest.mark.parametrize("item", [
        ["alice"],
        ["alice", -5],
        ["alice", 1.5],
        [True, 5],
        {"identifier": "alice"},
        "alice",
    ])
    def test_malformed_entry(self, temp_dir: Path, item):
        path = temp_dir / "balances.json"
        path.write_text(json.dumps([["ok", 1], item]))
        with pytest.raises(EntryLoadError, match="entry 1"):
            load_entries(path)


class TestCsvEntries:
    """Test CSV entry files."""

    def test_csv(self, temp_dir: Path):
        path = temp_dir / "balances.csv"
        path.write_text("identifier,balance\nalice,100\nbob,250\n")
        assert load_entries(path) == [("alice", 100), ("bob", 250)]

    def test_extra_columns_ignored(self, temp_dir: Path):
        path = temp_dir / "balances.csv"
        path.write_text("identifier,balance,note\nalice,100,cold wallet\n")
        assert load_entries(path) == [("alice", 100)]

    def test_missing_columns(self, temp_dir: Path):
        path = temp_dir / "balances.csv"
        path.write_text("user,amount\nalice,100\n")
        with pytest.raises(EntryLoadError, match="columns"):
            load_entries(path)

    def test_bad_balance_reports_line(self, temp_dir: Path):
        path = temp_dir / "balances.csv"
        path.write_text("identifier,balance\nalice,100\nbob,lots\n")
        with pytest.raises(EntryLoadError, match="line 3"):
            load_entries(path)

    def test_unicode_digit_balance_rejected(self, temp_dir: Path):
        path = temp_dir / "balances.csv"
        path.write_text("identifier,balance\nalice,²\n", encoding="utf-8")
        with pytest.raises(EntryLoadError, match="line 2"):
            load_entries(path)


class TestEntryFileErrors:
    """Test file-level errors."""

    def test_unsupported_extension(self, temp_dir: Path):
        path = temp_dir / "balances.txt"
        path.write_text("alice 100")
        with pytest.raises(EntryLoadError, match="Unsupported"):
            load_entries(path)

    def test_missing_file(self, temp_dir: Path):
        with pytest.raises(EntryLoadError, match="Failed to read"):
            load_entries(temp_dir / "missing.json")
