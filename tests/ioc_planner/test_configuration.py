"""Tests for analysis configuration."""

import pytest
from pydantic import ValidationError

from ioc_planner.configuration import AnalysisConfiguration
from ioc_planner.diagnostics import Severity
from ioc_planner.errors import ConfigurationError
from ioc_planner.models import Lifetime


class TestAnalysisConfiguration:
    """Tests for direct instantiation."""

    def test_defaults(self) -> None:
        config = AnalysisConfiguration()

        assert config.implicit_lifetime is Lifetime.SCOPED
        assert config.lifetime_validation_enabled
        assert config.diagnostics_enabled
        assert config.disabled_diagnostics == ()
        assert config.max_inheritance_depth == 32
        assert config.configuration_source_type == "IConfiguration"
        assert config.configuration_parameter_name == "configuration"

    def test_codes_are_normalised(self) -> None:
        config = AnalysisConfiguration(
            disabled_diagnostics=("ioc013", " IOC001 ", "IOC013", ""),
            severity_overrides={"ioc039": "Error"},
        )

        assert config.disabled_diagnostics == ("IOC001", "IOC013")
        assert config.severity_overrides == {"IOC039": Severity.ERROR}

    def test_unspecified_implicit_lifetime_is_rejected(self) -> None:
        with pytest.raises(ValidationError, match="concrete lifetime"):
            AnalysisConfiguration(implicit_lifetime=Lifetime.UNSPECIFIED)

    def test_configuration_is_frozen(self) -> None:
        config = AnalysisConfiguration()

        with pytest.raises(ValidationError):
            config.max_inheritance_depth = 4  # type: ignore[misc]

    @pytest.mark.parametrize(
        "type_name",
        [
            "ILogger<OrderService>",
            "Microsoft.Extensions.Logging.ILoggerFactory",
            "IOptions<SmtpSettings>",
        ],
    )
    def test_framework_types(self, type_name: str) -> None:
        assert AnalysisConfiguration().is_framework_type(type_name)

    def test_application_types_are_not_framework_types(self) -> None:
        assert not AnalysisConfiguration().is_framework_type("IOrderRepository")


class TestFromProperties:
    """Tests for property and environment layering."""

    def test_environment_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("IOC_PLANNER_IMPLICIT_LIFETIME", "transient")
        monkeypatch.setenv("IOC_PLANNER_LIFETIME_VALIDATION", "false")
        monkeypatch.setenv("IOC_PLANNER_DIAGNOSTICS", "yes")
        monkeypatch.setenv("IOC_PLANNER_MAX_INHERITANCE_DEPTH", "8")
        monkeypatch.setenv("IOC_PLANNER_DISABLED_DIAGNOSTICS", "ioc013, IOC001")

        config = AnalysisConfiguration.from_properties({})

        assert config.implicit_lifetime is Lifetime.TRANSIENT
        assert not config.lifetime_validation_enabled
        assert config.diagnostics_enabled
        assert config.max_inheritance_depth == 8
        assert config.disabled_diagnostics == ("IOC001", "IOC013")

    def test_explicit_properties_win(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("IOC_PLANNER_LIFETIME_VALIDATION", "false")
        monkeypatch.setenv("IOC_PLANNER_DISABLED_DIAGNOSTICS", "IOC013")

        config = AnalysisConfiguration.from_properties(
            {"lifetime_validation_enabled": True, "disabled_diagnostics": ()}
        )

        assert config.lifetime_validation_enabled
        assert config.disabled_diagnostics == ()

    def test_properties_are_not_mutated(self) -> None:
        properties = {"max_inheritance_depth": 4}

        AnalysisConfiguration.from_properties(properties)

        assert properties == {"max_inheritance_depth": 4}

    @pytest.mark.parametrize(
        "properties",
        [
            {"implicit_lifetime": "Unspecified"},
            {"max_inheritance_depth": 0},
            {"severity_overrides": {"IOC012": "Fatal"}},
            {"unknown_setting": True},
        ],
    )
    def test_invalid_properties(self, properties: dict) -> None:
        with pytest.raises(ConfigurationError, match="Invalid analysis configuration"):
            AnalysisConfiguration.from_properties(properties)

    def test_invalid_environment_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("IOC_PLANNER_MAX_INHERITANCE_DEPTH", "deep")

        with pytest.raises(ConfigurationError):
            AnalysisConfiguration.from_properties({})
