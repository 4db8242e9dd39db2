#!/usr/bin/env python3
"""Load compiled-contract records and map them to their artifact files."""

from __future__ import annotations

import json
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from artifact_files import MappedArtifactFiles, VersionedContract

ROOT = Path(__file__).resolve().parents[1]
DEFAULT_MANIFEST = ROOT / "out" / "artifact_manifest.json"

RECORD_FIELDS = ("source_file", "contract_name", "compiled_payload", "target_path")


@dataclass(frozen=True)
class CompiledArtifact:
    """One compiled contract together with its precomputed target path."""

    source_file: str
    contract_name: str
    contract: VersionedContract
    target_path: str


def load_artifact_manifest(path: Path) -> list[CompiledArtifact]:
    """Load a JSON array of compiled-contract records.

    Each record is an object with `source_file`, `contract_name`,
    `compiled_payload` (`{"version": ..., "contract": ...}`) and `target_path`.

    Returns:
        Records in file order.

    Raises:
        SystemExit: If the file is missing, is not valid JSON, or does not
            match the record schema.
    """
    if not path.exists():
        raise SystemExit(f"Missing artifact manifest: {path}")

    try:
        raw: object = json.loads(
            path.read_text(encoding="utf-8"),
            object_pairs_hook=_reject_duplicate_object_keys,
        )
    except (json.JSONDecodeError, ValueError) as exc:
        raise SystemExit(f"Invalid JSON in {path}: {exc}") from exc

    try:
        return parse_artifact_records(raw)
    except ValueError as exc:
        raise SystemExit(f"Invalid schema in {path}: {exc}") from exc


def parse_artifact_records(raw: object) -> list[CompiledArtifact]:
    if not isinstance(raw, list):
        raise ValueError("expected top-level array of compiled-contract records.")

    records: list[CompiledArtifact] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValueError(f"record {index} must be an object.")
        missing = [name for name in RECORD_FIELDS if name not in item]
        if missing:
            raise ValueError(f"record {index} is missing field(s): {', '.join(missing)}.")
        for name in ("source_file", "contract_name", "target_path"):
            value = item[name]
            if not isinstance(value, str) or not value:
                raise ValueError(f"record {index} field {name!r} must be a non-empty string, got {value!r}.")
        try:
            contract = VersionedContract.from_json(item["compiled_payload"])
        except ValueError as exc:
            raise ValueError(f"record {index}: {exc}.") from exc
        records.append(
            CompiledArtifact(
                source_file=item["source_file"],
                contract_name=item["contract_name"],
                contract=contract,
                target_path=item["target_path"],
            )
        )
    return records


def map_artifact_files(
    records: Iterable[CompiledArtifact],
    capacity: int | None = None,
) -> MappedArtifactFiles:
    """Group records by artifact file, preserving record order within each group."""
    mapped = MappedArtifactFiles.with_capacity(capacity) if capacity is not None else MappedArtifactFiles()
    for record in records:
        mapped.insert(record.source_file, record.contract_name, record.contract, record.target_path)
    return mapped


def _reject_duplicate_object_keys(pairs: list[tuple[str, object]]) -> dict[str, object]:
    """`object_pairs_hook` that fails on repeated keys instead of keeping the last."""
    counts = Counter(key for key, _ in pairs)
    duplicates = sorted(repr(key) for key, count in counts.items() if count > 1)
    if duplicates:
        raise ValueError(f"duplicate object key(s): {', '.join(duplicates)}")
    return dict(pairs)
