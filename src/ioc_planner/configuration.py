"""Configuration for declaration analysis passes.

Configuration supports both explicit instantiation and environment variable
fallback, following the same layering as the other service configurations.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ioc_planner.diagnostics import Diagnostic, Severity, apply_overrides
from ioc_planner.errors import ConfigurationError
from ioc_planner.models import Lifetime

_TRUTHY = ("true", "1", "yes", "on")

DEFAULT_FRAMEWORK_TYPES = (
    "IConfiguration",
    "IHostEnvironment",
    "IHttpClientFactory",
    "ILogger",
    "ILoggerFactory",
    "IMemoryCache",
    "IOptions",
    "IOptionsMonitor",
    "IOptionsSnapshot",
    "IServiceProvider",
    "IServiceScopeFactory",
    "IWebHostEnvironment",
)


class AnalysisConfiguration(BaseModel):
    """Settings that shape one analysis pass.

    Attributes:
        implicit_lifetime: Lifetime used for types that declare none.
        lifetime_validation_enabled: Run the lifetime validator.
        diagnostics_enabled: Report diagnostics at all.
        disabled_diagnostics: Diagnostic codes to drop.
        severity_overrides: Replacement severity per diagnostic code.
        max_inheritance_depth: Bound for every base-type walk.
        interface_marker: Leading character stripped from interface names.
        configuration_source_type: Type of the shared configuration parameter.
        configuration_parameter_name: Name of the shared configuration parameter.
        framework_types: Types supplied by the host container; dependencies
            on them are never reported as missing.

    Example:
        ```python
        config = AnalysisConfiguration.from_properties(
            {"severity_overrides": {"IOC013": "Error"}}
        )
        ```

    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
    )

    implicit_lifetime: Lifetime = Lifetime.SCOPED
    lifetime_validation_enabled: bool = True
    diagnostics_enabled: bool = True
    disabled_diagnostics: tuple[str, ...] = ()
    severity_overrides: dict[str, Severity] = Field(default_factory=dict)
    max_inheritance_depth: int = Field(default=32, ge=1, le=1024)
    interface_marker: str = Field(default="I", max_length=1)
    configuration_source_type: str = Field(default="IConfiguration", min_length=1)
    configuration_parameter_name: str = Field(default="configuration", min_length=1)
    framework_types: tuple[str, ...] = DEFAULT_FRAMEWORK_TYPES

    @field_validator("implicit_lifetime")
    @classmethod
    def validate_implicit_lifetime(cls, v: Lifetime) -> Lifetime:
        """Reject ``Unspecified`` as the implicit lifetime."""
        if v is Lifetime.UNSPECIFIED:
            raise ValueError("implicit_lifetime must be a concrete lifetime")
        return v

    @field_validator("disabled_diagnostics")
    @classmethod
    def normalise_codes(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Upper-case, de-duplicate and sort diagnostic codes."""
        return tuple(sorted({code.strip().upper() for code in v if code.strip()}))

    @field_validator("severity_overrides")
    @classmethod
    def normalise_override_codes(
        cls, v: dict[str, Severity]
    ) -> dict[str, Severity]:
        """Upper-case override codes and order them."""
        return {code.strip().upper(): v[code] for code in sorted(v)}

    @classmethod
    def from_properties(cls, properties: dict[str, Any]) -> Self:
        """Create configuration from properties with environment fallback.

        Layering:
        1. Explicit properties (highest priority)
        2. Environment variables (fallback)
        3. Defaults (lowest priority)

        Environment variables used:
        - IOC_PLANNER_IMPLICIT_LIFETIME: Lifetime for undeclared types
        - IOC_PLANNER_LIFETIME_VALIDATION: Enable lifetime validation ("true"/"1"/"yes")
        - IOC_PLANNER_DIAGNOSTICS: Enable diagnostics ("true"/"1"/"yes")
        - IOC_PLANNER_MAX_INHERITANCE_DEPTH: Base-type walk bound
        - IOC_PLANNER_DISABLED_DIAGNOSTICS: Comma separated codes to drop

        Args:
            properties: Configuration properties dictionary

        Returns:
            Validated configuration instance

        Raises:
            ConfigurationError: If configuration is invalid

        """
        config_data = properties.copy()

        if "implicit_lifetime" not in config_data:
            lifetime = os.getenv("IOC_PLANNER_IMPLICIT_LIFETIME")
            if lifetime:
                config_data["implicit_lifetime"] = lifetime

        if "lifetime_validation_enabled" not in config_data:
            flag = os.getenv("IOC_PLANNER_LIFETIME_VALIDATION")
            if flag:
                config_data["lifetime_validation_enabled"] = flag.lower() in _TRUTHY

        if "diagnostics_enabled" not in config_data:
            flag = os.getenv("IOC_PLANNER_DIAGNOSTICS")
            if flag:
                config_data["diagnostics_enabled"] = flag.lower() in _TRUTHY

        if "max_inheritance_depth" not in config_data:
            depth = os.getenv("IOC_PLANNER_MAX_INHERITANCE_DEPTH")
            if depth:
                config_data["max_inheritance_depth"] = depth

        if "disabled_diagnostics" not in config_data:
            codes = os.getenv("IOC_PLANNER_DISABLED_DIAGNOSTICS", "")
            config_data["disabled_diagnostics"] = tuple(
                code for code in codes.split(",") if code.strip()
            )

        try:
            return cls.model_validate(config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid analysis configuration: {e}") from e

    def apply(self, diagnostics: Iterable[Diagnostic]) -> tuple[Diagnostic, ...]:
        """Apply enablement, suppression and severity overrides."""
        return apply_overrides(
            diagnostics,
            enabled=self.diagnostics_enabled,
            disabled=self.disabled_diagnostics,
            severity_overrides=self.severity_overrides,
        )

    def is_framework_type(self, type_name: str) -> bool:
        """Whether ``type_name`` is supplied by the host container."""
        simple = type_name.split("<", 1)[0].rsplit(".", 1)[-1]
        return simple in self.framework_types
