#!/usr/bin/env python3
"""Group compiled contracts by the artifact file they will be written to.

Artifact paths are keyed by their lowercase form, so two contracts whose
output paths differ only by letter case land in the same bucket. Such a
bucket collides on case-insensitive filesystems (macOS/Windows); finding
and acting on it is left to the caller.
"""

from __future__ import annotations

import json
import os
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

PathInput = Union[str, bytes, "os.PathLike[str]", "os.PathLike[bytes]"]

# Runs of bytes smuggled into str by os.fsdecode (surrogateescape).
ESCAPED_BYTES_RE = re.compile("[\udc80-\udcff]+")
LONE_SURROGATE_RE = re.compile("[\ud800-\udfff]")


def _lossy_path_text(path: PathInput) -> str:
    """Return the text form of `path`, replacing undecodable bytes with U+FFFD.

    Escaped bytes decode exactly as the raw bytes would, whatever else the
    path contains; any other lone surrogate becomes a single U+FFFD.
    """
    raw = os.fspath(path)
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    text = ESCAPED_BYTES_RE.sub(
        lambda m: m.group(0).encode("utf-8", errors="surrogateescape").decode("utf-8", errors="replace"),
        raw,
    )
    return LONE_SURROGATE_RE.sub("\ufffd", text)


@dataclass(frozen=True)
class VersionedContract:
    """Compiled contract payload tagged with the compiler version that produced it."""

    version: str
    contract: Any

    def to_json(self) -> dict[str, Any]:
        return {"version": self.version, "contract": self.contract}

    @classmethod
    def from_json(cls, raw: object) -> VersionedContract:
        if not isinstance(raw, dict):
            raise ValueError(f"contract payload must be an object, got {type(raw).__name__}")
        version = raw.get("version")
        if not isinstance(version, str) or not version:
            raise ValueError(f"contract payload version must be a non-empty string, got {version!r}")
        if "contract" not in raw:
            raise ValueError("contract payload is missing the 'contract' field")
        return cls(version=version, contract=raw["contract"])


@dataclass(frozen=True)
class MappedArtifactFile:
    """Targeted artifact path of one or more contracts.

    Identity is the lowercase path so that case-only differences compare equal.
    """

    lower_case_path: str

    @classmethod
    def from_path(cls, path: PathInput) -> MappedArtifactFile:
        return cls(_lossy_path_text(path).lower())

    def __str__(self) -> str:
        return self.lower_case_path


@dataclass(frozen=True)
class MappedContract:
    """One contract and the artifact path it targets, exactly as given."""

    file: str
    name: str
    contract: VersionedContract
    artifact_path: str

    def to_json(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "name": self.name,
            "contract": self.contract.to_json(),
            "artifact_path": _lossy_path_text(self.artifact_path),
        }

    @classmethod
    def from_json(cls, raw: object) -> MappedContract:
        if not isinstance(raw, dict):
            raise ValueError(f"mapped contract must be an object, got {type(raw).__name__}")
        for key in ("file", "name", "artifact_path"):
            if not isinstance(raw.get(key), str):
                raise ValueError(f"mapped contract field {key!r} must be a string, got {raw.get(key)!r}")
        return cls(
            file=raw["file"],
            name=raw["name"],
            contract=VersionedContract.from_json(raw.get("contract")),
            artifact_path=raw["artifact_path"],
        )


@dataclass
class MappedArtifactFiles(Mapping[MappedArtifactFile, list[MappedContract]]):
    """All contracts mapped to their output artifact file.

    Every list in `files` holds at least one contract. A list with more than
    one contract is a naming conflict: different contracts target the same
    output file once case is ignored. Lists keep insertion order.
    """

    files: dict[MappedArtifactFile, list[MappedContract]] = field(default_factory=dict)

    @classmethod
    def with_capacity(cls, capacity: int) -> MappedArtifactFiles:
        """Create an empty container sized for `capacity` artifact files.

        dict has no reserve API, so the hint is accepted and has no effect.
        """
        return cls()

    def insert(
        self,
        file: str,
        name: str,
        contract: VersionedContract,
        artifact_path: PathInput,
    ) -> MappedContract:
        path_text = os.fsdecode(artifact_path)
        mapped = MappedContract(
            file=file,
            name=name,
            contract=contract,
            artifact_path=path_text,
        )
        key = MappedArtifactFile.from_path(path_text)
        self.files.setdefault(key, []).append(mapped)
        return mapped

    def get_path(self, path: PathInput) -> list[MappedContract] | None:
        return self.files.get(MappedArtifactFile.from_path(path))

    def conflicts(self) -> list[tuple[MappedArtifactFile, list[MappedContract]]]:
        return [(key, entries) for key, entries in self.files.items() if len(entries) > 1]

    def pop(self, key: MappedArtifactFile, *default: list[MappedContract]) -> list[MappedContract]:
        return self.files.pop(key, *default)

    def __getitem__(self, key: MappedArtifactFile) -> list[MappedContract]:
        return self.files[key]

    def __delitem__(self, key: MappedArtifactFile) -> None:
        del self.files[key]

    def __iter__(self) -> Iterator[MappedArtifactFile]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)

    def __repr__(self) -> str:
        return f"MappedArtifactFiles(files={self.files!r})"

    def to_json(self) -> dict[str, list[dict[str, Any]]]:
        return {
            key.lower_case_path: [entry.to_json() for entry in entries]
            for key, entries in self.files.items()
        }

    def to_json_text(self) -> str:
        return json.dumps(self.to_json(), indent=2) + "\n"

    @classmethod
    def from_json(cls, raw: object) -> MappedArtifactFiles:
        """Rebuild a container from its `to_json()` form.

        Each object key must be the lowercase form of every artifact path
        listed under it, so lookups by path find the rebuilt entries.
        """
        if not isinstance(raw, dict):
            raise ValueError(f"mapped artifact files must be an object, got {type(raw).__name__}")
        mapped = cls.with_capacity(len(raw))
        for lower_case_path, entries in raw.items():
            if not isinstance(entries, list) or not entries:
                raise ValueError(f"entries for {lower_case_path!r} must be a non-empty array")
            if lower_case_path != lower_case_path.lower():
                raise ValueError(f"key {lower_case_path!r} is not lowercase")
            contracts = [MappedContract.from_json(entry) for entry in entries]
            for contract in contracts:
                if MappedArtifactFile.from_path(contract.artifact_path).lower_case_path != lower_case_path:
                    raise ValueError(
                        f"artifact path {contract.artifact_path!r} does not map to key {lower_case_path!r}"
                    )
            mapped.files[MappedArtifactFile(lower_case_path)] = contracts
        return mapped


def merge_mapped_files(parts: Iterable[MappedArtifactFiles]) -> MappedArtifactFiles:
    """Fold per-worker containers into one, in the order given."""
    merged = MappedArtifactFiles()
    for part in parts:
        for key, entries in part.files.items():
            merged.files.setdefault(key, []).extend(entries)
    return merged
