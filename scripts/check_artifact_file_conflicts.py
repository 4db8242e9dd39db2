#!/usr/bin/env python3
"""Fail when compiled contracts target the same artifact file ignoring case."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from artifact_files import MappedArtifactFile, MappedArtifactFiles, MappedContract
from artifact_manifest import DEFAULT_MANIFEST, load_artifact_manifest, map_artifact_files


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--manifest",
        type=Path,
        default=DEFAULT_MANIFEST,
        help="JSON array of {source_file, contract_name, compiled_payload, target_path} records.",
    )
    parser.add_argument(
        "--capacity",
        type=int,
        default=None,
        help="Expected number of distinct artifact files (sizing hint only).",
    )
    parser.add_argument(
        "--dump",
        type=Path,
        default=None,
        help="Write the artifact-file mapping as JSON to this path.",
    )
    parser.add_argument(
        "--allow-conflicts",
        action="store_true",
        help="Report conflicts but exit 0.",
    )
    return parser.parse_args(argv)


def format_conflicts(
    conflicts: list[tuple[MappedArtifactFile, list[MappedContract]]],
) -> list[str]:
    lines: list[str] = []
    for key, entries in conflicts:
        lines.append(f"- {key.lower_case_path}")
        for entry in entries:
            lines.append(f"    {entry.file}:{entry.name} -> {entry.artifact_path}")
    return lines


def report_conflicts(mapped: MappedArtifactFiles) -> int:
    conflicts = mapped.conflicts()
    if not conflicts:
        print(f"artifact files are conflict-free ({len(mapped)} files).")
        return 0

    print(
        "ERROR: multiple contracts resolve to the same artifact file (case-insensitive).",
        file=sys.stderr,
    )
    print(
        "These collide on macOS/Windows and overwrite each other when written:",
        file=sys.stderr,
    )
    for line in format_conflicts(conflicts):
        print(line, file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    records = load_artifact_manifest(args.manifest)
    mapped = map_artifact_files(records, capacity=args.capacity)

    if args.dump is not None:
        args.dump.parent.mkdir(parents=True, exist_ok=True)
        args.dump.write_text(mapped.to_json_text(), encoding="utf-8")

    rc = report_conflicts(mapped)
    if rc and args.allow_conflicts:
        return 0
    return rc


if __name__ == "__main__":
    raise SystemExit(main())
