"""JSON Schema generation for declaration snapshots.

The schema is derived from the pydantic snapshot models and annotated with
the diagnostic catalogue under ``x-diagnostics``, so editors and front ends
can show what each ``IOC0xx`` code means next to the format it checks.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ioc_planner.diagnostics import DIAGNOSTIC_DESCRIPTORS
from ioc_planner.models import DeclarationSnapshot

SCHEMA_DIALECT = "http://json-schema.org/draft-07/schema#"

EXAMPLE_SNAPSHOT: dict[str, Any] = {
    "name": "orders",
    "types": [
        {
            "name": "OrderService",
            "lifetime": "Scoped",
            "interfaces": ["IOrderService"],
            "depends_on": [{"types": ["IOrderRepository"]}],
        },
        {
            "name": "OrderRepository",
            "lifetime": "Scoped",
            "interfaces": ["IOrderRepository"],
        },
    ],
}


class SnapshotSchemaGenerator:
    """Generates and saves the JSON schema of the snapshot format."""

    SCHEMA_VERSION = "1.0.0"

    @classmethod
    def generate_schema(cls) -> dict[str, Any]:
        """Generate the snapshot schema with metadata keys first.

        Returns:
            Dictionary containing the generated JSON schema.

        """
        model_schema = DeclarationSnapshot.model_json_schema()
        model_schema.pop("title", None)
        model_schema.pop("description", None)

        return {
            "$schema": SCHEMA_DIALECT,
            "version": cls.SCHEMA_VERSION,
            "title": "IoC Declaration Snapshot",
            "description": (
                "Dependency, lifetime and registration declarations of "
                "annotated types"
            ),
            **model_schema,
            "examples": [EXAMPLE_SNAPSHOT],
            "x-diagnostics": diagnostic_catalogue(),
        }

    @classmethod
    def save_schema(cls, output_path: Path) -> None:
        """Save generated schema to file.

        Args:
            output_path: Path where the schema file should be saved.

        Raises:
            OSError: If the file cannot be written.

        """
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(
            json.dumps(cls.generate_schema(), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )


def diagnostic_catalogue() -> dict[str, dict[str, str]]:
    """Code-ordered summary of every diagnostic the planner can report."""
    return {
        code: {
            "title": descriptor.title,
            "severity": descriptor.default_severity.value,
        }
        for code, descriptor in DIAGNOSTIC_DESCRIPTORS.items()
    }
