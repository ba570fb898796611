"""Diagnostic records and the catalogue of stable diagnostic codes.

Every problem the engine finds in a declaration set is reported as a
``Diagnostic`` attached to the offending type. Diagnostics never abort a pass;
severity only tells the host how to escalate them.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class Severity(StrEnum):
    """Diagnostic severity."""

    ERROR = "Error"
    WARNING = "Warning"
    INFO = "Info"


@dataclass(frozen=True)
class Diagnostic:
    """A single finding about one declared type.

    Attributes:
        code: Stable category code such as ``IOC012``.
        severity: Severity after configuration overrides.
        message: Human-readable message.
        type_name: The type the diagnostic is attached to.
        involved_types: Every type named by the diagnostic, in message order.

    """

    code: str
    severity: Severity
    message: str
    type_name: str
    involved_types: tuple[str, ...]

    def with_severity(self, severity: Severity) -> Diagnostic:
        """Return a copy with a different severity."""
        return dataclasses.replace(self, severity=severity)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "code": self.code,
            "severity": self.severity.value,
            "message": self.message,
            "type_name": self.type_name,
            "involved_types": list(self.involved_types),
        }


@dataclass(frozen=True)
class DiagnosticDescriptor:
    """Template for one diagnostic code."""

    code: str
    title: str
    message_format: str
    default_severity: Severity

    def create(
        self,
        type_name: str,
        *args: object,
        involved_types: Sequence[str] = (),
    ) -> Diagnostic:
        """Build a diagnostic attached to ``type_name``.

        Args:
            type_name: The type that owns the diagnostic.
            *args: Positional values for ``message_format``.
            involved_types: Types named by the diagnostic. Defaults to just
                ``type_name``.

        Returns:
            The diagnostic at its default severity.

        """
        return Diagnostic(
            code=self.code,
            severity=self.default_severity,
            message=self.message_format.format(*args),
            type_name=type_name,
            involved_types=tuple(involved_types) or (type_name,),
        )


# Graph

NO_IMPLEMENTATION = DiagnosticDescriptor(
    "IOC001",
    "No implementation found",
    "Dependency '{1}' of '{0}' has no implementation in the catalog",
    Severity.WARNING,
)
CIRCULAR_DEPENDENCY = DiagnosticDescriptor(
    "IOC003",
    "Circular dependency",
    "Circular dependency detected: {0}",
    Severity.WARNING,
)

# Registration directives

REGISTER_AS_ALL_WITHOUT_LIFETIME = DiagnosticDescriptor(
    "IOC004",
    "Register-as-all requires a lifetime",
    "'{0}' uses register-as-all but declares no lifetime",
    Severity.ERROR,
)
SKIPPED_INTERFACE_NOT_IMPLEMENTED = DiagnosticDescriptor(
    "IOC009",
    "Skipped interface not implemented",
    "'{0}' skips '{1}', which it does not implement",
    Severity.WARNING,
)
REGISTER_AS_NOT_IMPLEMENTED = DiagnosticDescriptor(
    "IOC029",
    "Register-as interface not implemented",
    "'{0}' is registered as '{1}' but does not implement it",
    Severity.ERROR,
)
DUPLICATE_REGISTER_AS = DiagnosticDescriptor(
    "IOC030",
    "Duplicate register-as interface",
    "'{0}' lists '{1}' more than once in register-as",
    Severity.WARNING,
)

# Constructor synthesis

DUPLICATE_EXPLICIT_DEPENDENCY = DiagnosticDescriptor(
    "IOC006",
    "Duplicate explicit dependency",
    "'{0}' declares dependency '{1}' more than once across explicit declarations",
    Severity.WARNING,
)
EXPLICIT_CONFLICTS_WITH_FIELD = DiagnosticDescriptor(
    "IOC007",
    "Explicit dependency conflicts with injected field",
    "'{0}' declares '{1}' explicitly and through injected field '{2}'; "
    "the injected field is used",
    Severity.WARNING,
)
DUPLICATE_IN_DECLARATION = DiagnosticDescriptor(
    "IOC008",
    "Duplicate type in explicit declaration",
    "'{0}' lists '{1}' more than once in one explicit declaration",
    Severity.WARNING,
)
UNUSED_DEPENDENCY = DiagnosticDescriptor(
    "IOC039",
    "Unused dependency",
    "Dependency '{1}' of '{0}' is never used",
    Severity.WARNING,
)
REDUNDANT_INHERITED_DEPENDENCY = DiagnosticDescriptor(
    "IOC040",
    "Dependency already supplied by base type",
    "'{0}' declares '{1}', which its base type '{2}' already supplies",
    Severity.WARNING,
)
PARAMETER_NAME_COLLISION = DiagnosticDescriptor(
    "IOC041",
    "Parameter name collision",
    "Parameter name '{1}' on '{0}' is produced by both '{2}' and '{3}'; "
    "renamed to '{4}'",
    Severity.ERROR,
)

# Structural

CANNOT_GENERATE_CONSTRUCTOR = DiagnosticDescriptor(
    "IOC011",
    "Type cannot receive a generated constructor",
    "'{0}' has dependencies but cannot receive a generated constructor",
    Severity.ERROR,
)
DUPLICATE_TYPE_DECLARATION = DiagnosticDescriptor(
    "IOC042",
    "Duplicate type declaration",
    "Type '{0}' is declared more than once; later declarations are ignored",
    Severity.ERROR,
)

# Configuration bindings

INVALID_CONFIGURATION_KEY = DiagnosticDescriptor(
    "IOC016",
    "Invalid configuration key",
    "Configuration key '{1}' on '{0}.{2}' is invalid",
    Severity.ERROR,
)
STATIC_CONFIGURATION_MEMBER = DiagnosticDescriptor(
    "IOC019",
    "Configuration binding on static member",
    "Configuration binding '{1}' on '{0}' is static and is ignored",
    Severity.WARNING,
)

# Lifetimes

SINGLETON_DEPENDS_ON_SCOPED = DiagnosticDescriptor(
    "IOC012",
    "Singleton depends on Scoped",
    "Singleton service '{0}' depends on Scoped service '{1}'{2}. "
    "Singleton services cannot capture shorter-lived dependencies.",
    Severity.ERROR,
)
SINGLETON_DEPENDS_ON_TRANSIENT = DiagnosticDescriptor(
    "IOC013",
    "Singleton depends on Transient",
    "Singleton service '{0}' depends on Transient service '{1}'. "
    "The Transient instance will live as long as the Singleton.",
    Severity.WARNING,
)
HOSTED_SERVICE_LIFETIME = DiagnosticDescriptor(
    "IOC014",
    "Hosted service lifetime",
    "Background service '{0}' has {1} lifetime. "
    "Background services must be Singleton.",
    Severity.ERROR,
)
INHERITANCE_LIFETIME = DiagnosticDescriptor(
    "IOC015",
    "Inheritance chain lifetime",
    "'{0}' ({1}) inherits from '{2}' ({3}); "
    "a derived type cannot have a shorter lifetime than its ancestors",
    Severity.ERROR,
)
INHERITANCE_DEPTH_EXCEEDED = DiagnosticDescriptor(
    "IOC043",
    "Inheritance chain too deep",
    "Inheritance chain of '{0}' exceeds {1} levels or loops back on itself",
    Severity.WARNING,
)

# Conditions

CONFLICTING_CONDITIONS = DiagnosticDescriptor(
    "IOC020",
    "Conflicting conditions",
    "'{0}' has conflicting conditions: {1}",
    Severity.ERROR,
)
CONDITIONAL_WITHOUT_LIFETIME = DiagnosticDescriptor(
    "IOC021",
    "Conditional service without lifetime",
    "Conditional service '{0}' declares no lifetime",
    Severity.ERROR,
)
EMPTY_CONDITION = DiagnosticDescriptor(
    "IOC022",
    "Empty condition",
    "Condition on '{0}' declares no criteria",
    Severity.ERROR,
)
CONFIG_KEY_WITHOUT_OPERATOR = DiagnosticDescriptor(
    "IOC023",
    "Configuration key without operator",
    "Condition on '{0}' names configuration key '{1}' without Equals or NotEquals",
    Severity.ERROR,
)
OPERATOR_WITHOUT_CONFIG_KEY = DiagnosticDescriptor(
    "IOC024",
    "Operator without configuration key",
    "Condition on '{0}' uses {1} without a configuration key",
    Severity.ERROR,
)
MULTIPLE_CONDITIONS = DiagnosticDescriptor(
    "IOC026",
    "Multiple conditions",
    "'{0}' declares {1} conditions; they are combined with OR",
    Severity.WARNING,
)

DIAGNOSTIC_DESCRIPTORS: dict[str, DiagnosticDescriptor] = {
    descriptor.code: descriptor
    for descriptor in sorted(
        (
            NO_IMPLEMENTATION,
            CIRCULAR_DEPENDENCY,
            REGISTER_AS_ALL_WITHOUT_LIFETIME,
            SKIPPED_INTERFACE_NOT_IMPLEMENTED,
            REGISTER_AS_NOT_IMPLEMENTED,
            DUPLICATE_REGISTER_AS,
            DUPLICATE_EXPLICIT_DEPENDENCY,
            EXPLICIT_CONFLICTS_WITH_FIELD,
            DUPLICATE_IN_DECLARATION,
            UNUSED_DEPENDENCY,
            REDUNDANT_INHERITED_DEPENDENCY,
            PARAMETER_NAME_COLLISION,
            CANNOT_GENERATE_CONSTRUCTOR,
            DUPLICATE_TYPE_DECLARATION,
            INVALID_CONFIGURATION_KEY,
            STATIC_CONFIGURATION_MEMBER,
            SINGLETON_DEPENDS_ON_SCOPED,
            SINGLETON_DEPENDS_ON_TRANSIENT,
            HOSTED_SERVICE_LIFETIME,
            INHERITANCE_LIFETIME,
            INHERITANCE_DEPTH_EXCEEDED,
            CONFLICTING_CONDITIONS,
            CONDITIONAL_WITHOUT_LIFETIME,
            EMPTY_CONDITION,
            CONFIG_KEY_WITHOUT_OPERATOR,
            OPERATOR_WITHOUT_CONFIG_KEY,
            MULTIPLE_CONDITIONS,
        ),
        key=lambda d: d.code,
    )
}


def apply_overrides(
    diagnostics: Iterable[Diagnostic],
    *,
    enabled: bool = True,
    disabled: Iterable[str] = (),
    severity_overrides: Mapping[str, Severity] | None = None,
) -> tuple[Diagnostic, ...]:
    """Filter diagnostics and remap their severities.

    Args:
        diagnostics: Diagnostics in emission order.
        enabled: When False every diagnostic is dropped.
        disabled: Codes to drop.
        severity_overrides: Replacement severity per code.

    Returns:
        The remaining diagnostics, in their original order.

    """
    if not enabled:
        return ()

    disabled_codes = frozenset(disabled)
    overrides = severity_overrides or {}
    result: list[Diagnostic] = []
    for diagnostic in diagnostics:
        if diagnostic.code in disabled_codes:
            continue
        override = overrides.get(diagnostic.code)
        if override is not None and override is not diagnostic.severity:
            diagnostic = diagnostic.with_severity(override)
        result.append(diagnostic)
    return tuple(result)
