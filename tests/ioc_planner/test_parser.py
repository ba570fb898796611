"""Tests for snapshot parsing."""

from pathlib import Path

import pytest

from ioc_planner.errors import SnapshotParseError, SnapshotValidationError
from ioc_planner.models import Lifetime, NamingConvention, RegistrationMode
from ioc_planner.parser import parse_snapshot, parse_snapshot_from_dict


class TestParseSnapshot:
    """Tests for parsing snapshot files."""

    def test_parses_yaml_snapshot(self, write_snapshot) -> None:
        path = write_snapshot(
            {
                "name": "orders",
                "types": [
                    {
                        "name": "OrderService",
                        "lifetime": "scoped",
                        "interfaces": ["IOrderService"],
                        "depends_on": [
                            {
                                "types": ["IOrderRepository", "IClock"],
                                "naming_convention": "snake_case",
                            }
                        ],
                        "registration": {"mode": "exclusionary"},
                    }
                ],
            }
        )

        result = parse_snapshot(path)

        declaration = result.types[0]
        assert result.name == "orders"
        assert declaration.lifetime is Lifetime.SCOPED
        assert declaration.depends_on[0].types == ["IOrderRepository", "IClock"]
        convention = declaration.depends_on[0].naming_convention
        assert convention is NamingConvention.SNAKE_CASE
        assert declaration.registration.mode is RegistrationMode.EXCLUSIONARY

    def test_parses_json_snapshot(self, tmp_path: Path) -> None:
        path = tmp_path / "snapshot.json"
        path.write_text('{"types": [{"name": "Clock", "lifetime": "Singleton"}]}')

        result = parse_snapshot(path)

        assert result.types[0].lifetime is Lifetime.SINGLETON

    def test_substitutes_environment_variables(
        self, write_snapshot, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SERVICE_NAMESPACE", "App.Orders")
        path = write_snapshot(
            {
                "types": [
                    {"name": "${SERVICE_NAMESPACE}.OrderService"},
                    {"name": "${MISSING_NAMESPACE:-App}.Clock"},
                ]
            }
        )

        result = parse_snapshot(path)

        assert [t.name for t in result.types] == [
            "App.Orders.OrderService",
            "App.Clock",
        ]

    def test_undefined_environment_variable(self, write_snapshot) -> None:
        path = write_snapshot({"types": [{"name": "${UNDEFINED_IOC_VARIABLE}"}]})

        with pytest.raises(SnapshotParseError, match="UNDEFINED_IOC_VARIABLE"):
            parse_snapshot(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SnapshotParseError, match="not found"):
            parse_snapshot(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("types: [\n  - name: {")

        with pytest.raises(SnapshotParseError, match="Invalid YAML"):
            parse_snapshot(path)

    def test_document_must_be_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- name: Clock\n")

        with pytest.raises(SnapshotParseError, match="must contain a mapping"):
            parse_snapshot(path)

    def test_invalid_structure(self, write_snapshot) -> None:
        path = write_snapshot({"types": [{"name": "Clock", "lifetime": "Forever"}]})

        with pytest.raises(SnapshotValidationError, match="Invalid snapshot structure"):
            parse_snapshot(path)


class TestParseSnapshotFromDict:
    """Tests for parsing snapshot dictionaries."""

    def test_defaults(self) -> None:
        result = parse_snapshot_from_dict({"types": [{"name": "Clock"}]})

        declaration = result.types[0]
        assert declaration.lifetime is Lifetime.UNSPECIFIED
        assert declaration.is_partial
        assert declaration.referenced_members is None
        assert declaration.registration.mode is RegistrationMode.ALL

    def test_no_environment_substitution(self) -> None:
        result = parse_snapshot_from_dict({"types": [{"name": "${NOT_SUBSTITUTED}"}]})

        assert result.types[0].name == "${NOT_SUBSTITUTED}"

    @pytest.mark.parametrize(
        "data",
        [
            {"types": [{"name": "Clock", "unknown": True}]},
            {"types": [{"name": ""}]},
            {"types": [{"name": "A", "depends_on": [{"types": []}]}]},
            {"types": [{"name": "A", "depends_on": [{"types": ["  "]}]}]},
        ],
    )
    def test_rejects_invalid_declarations(self, data: dict) -> None:
        with pytest.raises(SnapshotValidationError):
            parse_snapshot_from_dict(data)
