"""Tests for snapshot JSON schema generation."""

import json
from pathlib import Path

from ioc_planner.diagnostics import DIAGNOSTIC_DESCRIPTORS
from ioc_planner.parser import parse_snapshot_from_dict
from ioc_planner.schema import SnapshotSchemaGenerator


class TestSnapshotSchemaGenerator:
    """Tests for SnapshotSchemaGenerator."""

    def test_schema_metadata_comes_first(self) -> None:
        schema = SnapshotSchemaGenerator.generate_schema()

        assert list(schema)[:2] == ["$schema", "version"]
        assert schema["version"] == SnapshotSchemaGenerator.SCHEMA_VERSION
        assert schema["title"] == "IoC Declaration Snapshot"

    def test_schema_describes_declarations(self) -> None:
        schema = SnapshotSchemaGenerator.generate_schema()

        assert "types" in schema["properties"]
        definitions = schema["$defs"]
        assert "TypeDeclaration" in definitions
        assert "lifetime" in definitions["TypeDeclaration"]["properties"]
        assert definitions["Lifetime"]["enum"] == [
            "Transient",
            "Scoped",
            "Singleton",
            "Unspecified",
        ]

    def test_save_schema(self, tmp_path: Path) -> None:
        output_path = tmp_path / "nested" / "ioc-snapshot.schema.json"

        SnapshotSchemaGenerator.save_schema(output_path)

        saved = json.loads(output_path.read_text(encoding="utf-8"))
        assert saved == SnapshotSchemaGenerator.generate_schema()

    def test_example_is_a_valid_snapshot(self) -> None:
        schema = SnapshotSchemaGenerator.generate_schema()

        snapshot = parse_snapshot_from_dict(schema["examples"][0])

        assert [t.name for t in snapshot.types] == [
            "OrderService",
            "OrderRepository",
        ]

    def test_schema_lists_diagnostic_codes(self) -> None:
        catalogue = SnapshotSchemaGenerator.generate_schema()["x-diagnostics"]

        assert list(catalogue) == sorted(DIAGNOSTIC_DESCRIPTORS)
        assert catalogue["IOC012"]["severity"] == "Error"
        assert catalogue["IOC013"]["severity"] == "Warning"
