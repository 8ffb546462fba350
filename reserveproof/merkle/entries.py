"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
ReserveProof, a product of Garudex Labs

Loading of (identifier, balance) entry files.

Supported formats:
- .json: a list of [identifier, balance] pairs or {"identifier", "balance"} objects
- .csv: a header row with identifier and balance columns

Entry order in the file is leaf order in the tree.
"""

import csv
import json
from pathlib import Path
from typing import Any, List, Tuple, Union

from reserveproof.exceptions import EntryLoadError, FieldElementError
from reserveproof.logging_config import get_logger
from reserveproof.merkle.field import parse_balance

logger = get_logger(__name__)

Entry = Tuple[str, int]


def load_entries(path: Union[str, Path]) -> List[Entry]:
    """
    Load ordered entries from a JSON or CSV file.

    Args:
        path: Entry file

    Returns:
        List of (identifier, balance) pairs in file order

    Raises:
        EntryLoadError: If the file is unreadable, has an unsupported
            extension, or contains a malformed entry
    """
    path = Path(path)
    suffix = path.suffix.lower()

    try:
        if suffix == ".json":
            entries = _load_json(path)
        elif suffix == ".csv":
            entries = _load_csv(path)
        else:
            raise EntryLoadError(f"Unsupported entry file type '{suffix}' (expected .json or .csv)")
    except OSError as e:
        logger.error(f"Failed to read entry file {path}: {e}", exc_info=True)
        raise EntryLoadError(f"Failed to read entry file {path}: {e}") from e

    logger.info(f"Loaded {len(entries)} entries from {path}")
    return entries


def _coerce(identifier: Any, balance: Any, where: str) -> Entry:
    if identifier is None or balance is None:
        raise EntryLoadError(f"{where}: identifier and balance are required")
    if isinstance(identifier, bool) or not isinstance(identifier, (str, int)):
        raise EntryLoadError(f"{where}: identifier must be a string, got {identifier!r}")
    try:
        return str(identifier), parse_balance(balance)
    except FieldElementError as e:
        raise EntryLoadError(f"{where}: {e}") from e


def _load_json(path: Path) -> List[Entry]:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise EntryLoadError(f"Invalid JSON in entry file {path}: {e}") from e

    if not isinstance(data, list):
        raise EntryLoadError(f"Entry file {path} must contain a JSON list")

    entries = []
    for position, item in enumerate(data):
        where = f"{path.name} entry {position}"
        if isinstance(item, dict):
            entries.append(_coerce(item.get("identifier"), item.get("balance"), where))
        elif isinstance(item, list) and len(item) == 2:
            entries.append(_coerce(item[0], item[1], where))
        else:
            raise EntryLoadError(f"{where}: expected [identifier, balance] or an object, got {item!r}")
    return entries


def _load_csv(path: Path) -> List[Entry]:
    with open(path, "r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        if not reader.fieldnames or not {"identifier", "balance"} <= set(reader.fieldnames):
            raise EntryLoadError(f"CSV entry file {path} must have 'identifier' and 'balance' columns")
        # Header is line 1
        return [
            _coerce(row["identifier"], row["balance"], f"{path.name} line {line}")
            for line, row in enumerate(reader, start=2)
        ]
