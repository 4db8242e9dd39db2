#!/usr/bin/env python3
from __future__ import annotations

import json
import sys
import tempfile
import unittest
from pathlib import Path

SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

import artifact_manifest
from artifact_files import MappedArtifactFile, VersionedContract


def _record(source_file: str, name: str, target_path: str, version: str = "0.8.33") -> dict[str, object]:
    return {
        "source_file": source_file,
        "contract_name": name,
        "compiled_payload": {"version": version, "contract": {"abi": [], "bytecode": "0x"}},
        "target_path": target_path,
    }


class LoadArtifactManifestTests(unittest.TestCase):
    def _load(self, text: str) -> list[artifact_manifest.CompiledArtifact]:
        with tempfile.TemporaryDirectory() as tmpdir:
            manifest = Path(tmpdir) / "artifact_manifest.json"
            manifest.write_text(text, encoding="utf-8")
            return artifact_manifest.load_artifact_manifest(manifest)

    def test_loads_records_in_order(self) -> None:
        records = self._load(
            json.dumps(
                [
                    _record("src/Token.sol", "Token", "out/Token.sol/Token.json"),
                    _record("src/token.sol", "Token", "out/token.sol/Token.json", version="0.8.20"),
                ]
            )
        )
        self.assertEqual([r.source_file for r in records], ["src/Token.sol", "src/token.sol"])
        self.assertEqual(records[1].contract, VersionedContract("0.8.20", {"abi": [], "bytecode": "0x"}))
        self.assertEqual(records[1].target_path, "out/token.sol/Token.json")

    def test_missing_manifest_exits(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            artifact_manifest.load_artifact_manifest(Path("/nonexistent/artifact_manifest.json"))
        self.assertIn("Missing artifact manifest", str(ctx.exception.code))

    def test_invalid_json_exits(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            self._load("[{")
        self.assertIn("Invalid JSON", str(ctx.exception.code))

    def test_duplicate_keys_are_rejected(self) -> None:
        text = (
            '[{"source_file": "a.sol", "source_file": "b.sol", "contract_name": "A",'
            ' "compiled_payload": {"version": "0.8.33", "contract": {}}, "target_path": "out/A.json"}]'
        )
        with self.assertRaises(SystemExit) as ctx:
            self._load(text)
        self.assertIn("duplicate object key(s): 'source_file'", str(ctx.exception.code))

    def test_all_duplicate_keys_are_listed_sorted(self) -> None:
        text = (
            '[{"target_path": "a", "source_file": "a.sol", "target_path": "b", "contract_name": "A",'
            ' "contract_name": "B", "compiled_payload": {"version": "0.8.33", "contract": {}}}]'
        )
        with self.assertRaises(SystemExit) as ctx:
            self._load(text)
        self.assertIn("duplicate object key(s): 'contract_name', 'target_path'", str(ctx.exception.code))

    def test_top_level_must_be_array(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            self._load("{}")
        self.assertIn("expected top-level array", str(ctx.exception.code))

    def test_missing_fields_are_reported(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            self._load(json.dumps([{"source_file": "a.sol"}]))
        message = str(ctx.exception.code)
        self.assertIn("record 0 is missing field(s)", message)
        self.assertIn("target_path", message)

    def test_empty_target_path_is_rejected(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            self._load(json.dumps([_record("a.sol", "A", "")]))
        self.assertIn("'target_path' must be a non-empty string", str(ctx.exception.code))

    def test_bad_payload_is_rejected(self) -> None:
        bad = _record("a.sol", "A", "out/A.json")
        bad["compiled_payload"] = {"contract": {}}
        with self.assertRaises(SystemExit) as ctx:
            self._load(json.dumps([bad]))
        self.assertIn("record 0: contract payload version", str(ctx.exception.code))


class MapArtifactFilesTests(unittest.TestCase):
    def test_scenario_case_collision(self) -> None:
        records = artifact_manifest.parse_artifact_records(
            [
                _record("src/Token.sol", "Token", "out/Token.sol/Token.json"),
                _record("src/token.sol", "Token", "out/token.sol/Token.json"),
            ]
        )
        mapped = artifact_manifest.map_artifact_files(records, capacity=len(records))
        self.assertEqual(list(mapped), [MappedArtifactFile("out/token.sol/token.json")])
        entries = mapped[MappedArtifactFile("out/token.sol/token.json")]
        self.assertEqual([e.file for e in entries], ["src/Token.sol", "src/token.sol"])

    def test_scenario_distinct_files(self) -> None:
        records = artifact_manifest.parse_artifact_records(
            [
                _record("src/Foo.sol", "Foo", "out/Foo.sol/Foo.json"),
                _record("src/Bar.sol", "Bar", "out/Bar.sol/Bar.json"),
            ]
        )
        mapped = artifact_manifest.map_artifact_files(records)
        self.assertEqual(len(mapped), 2)
        self.assertEqual(mapped.conflicts(), [])

    def test_capacity_does_not_change_result(self) -> None:
        records = artifact_manifest.parse_artifact_records(
            [_record(f"src/C{i}.sol", f"C{i}", f"out/C{i}.sol/C{i}.json") for i in range(5)]
        )
        self.assertEqual(
            artifact_manifest.map_artifact_files(records, capacity=5),
            artifact_manifest.map_artifact_files(records),
        )


if __name__ == "__main__":
    unittest.main()
