"""Pydantic models for declaration snapshots.

A snapshot is what the annotation-parsing front end hands to the engine: one
record per annotated type, carrying its lifetime, dependency declarations,
registration directives, conditions and configuration bindings.
"""

from enum import StrEnum
from typing import Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _CaseInsensitiveEnum(StrEnum):
    """String enum that also accepts values in any letter case."""

    @classmethod
    def _missing_(cls, value: object) -> Self | None:
        if isinstance(value, str):
            lowered = value.replace("_", "").lower()
            for member in cls:
                if member.value.lower() == lowered:
                    return member
        return None


class Lifetime(_CaseInsensitiveEnum):
    """Service lifetime classification."""

    TRANSIENT = "Transient"
    SCOPED = "Scoped"
    SINGLETON = "Singleton"
    UNSPECIFIED = "Unspecified"

    @property
    def rank(self) -> int | None:
        """Relative length of the lifetime; longer lives rank higher."""
        return _LIFETIME_RANKS.get(self)


_LIFETIME_RANKS = {
    Lifetime.TRANSIENT: 0,
    Lifetime.SCOPED: 1,
    Lifetime.SINGLETON: 2,
}


class NamingConvention(_CaseInsensitiveEnum):
    """Naming convention applied to synthesized member names."""

    CAMEL_CASE = "CamelCase"
    PASCAL_CASE = "PascalCase"
    SNAKE_CASE = "SnakeCase"


class RegistrationMode(_CaseInsensitiveEnum):
    """Which service types a concrete type is registered under."""

    DIRECT_ONLY = "DirectOnly"
    """Only the concrete type."""

    ALL = "All"
    """The concrete type and every implemented interface."""

    EXCLUSIONARY = "Exclusionary"
    """Every implemented interface but not the concrete type."""


class InstanceSharing(_CaseInsensitiveEnum):
    """Whether interface registrations share one concrete instance."""

    SEPARATE = "Separate"
    SHARED = "Shared"


class ConditionOperator(_CaseInsensitiveEnum):
    """Comparison applied to a configuration value."""

    EQUALS = "Equals"
    NOT_EQUALS = "NotEquals"


FieldAccess = Literal["private", "protected", "internal", "public"]


class _DeclarationModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class InjectFieldDeclaration(_DeclarationModel):
    """An existing field marked for constructor injection."""

    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    optional: bool = False
    collection: bool = False
    """Many-of semantics; also inferred from collection-shaped type names."""

    access: FieldAccess = "private"


class DependsOnDeclaration(_DeclarationModel):
    """An explicit dependency declaration listing one or more target types."""

    types: list[str] = Field(min_length=1)
    naming_convention: NamingConvention = NamingConvention.CAMEL_CASE
    strip_interface_marker: bool = True
    prefix: str = "_"
    external: bool = False
    """Target is supplied from outside the catalog; skip graph validation."""

    @field_validator("types")
    @classmethod
    def validate_types(cls, v: list[str]) -> list[str]:
        """Reject blank target type names."""
        if any(not t.strip() for t in v):
            raise ValueError("Dependency target types cannot be blank")
        return [t.strip() for t in v]


class RegistrationDirectives(_DeclarationModel):
    """How a type should appear in the container registration plan."""

    register_as: list[str] = Field(default_factory=list)
    """Explicit interface list; replaces the implemented interface set."""

    register_as_all: bool = False
    mode: RegistrationMode = RegistrationMode.ALL
    instance_sharing: InstanceSharing | None = None
    skip: list[str] = Field(default_factory=list)


class ConditionDeclaration(_DeclarationModel):
    """Raw conditional-registration criteria.

    Environment lists and ``not_equals`` accept comma separated values.
    Validation of the combination is left to the predicate compiler so that
    malformed criteria become diagnostics instead of parse failures.
    """

    environment: str | None = None
    not_environment: str | None = None
    config_key: str | None = None
    equals: str | None = None
    not_equals: str | None = None


class ConfigurationBindingDeclaration(_DeclarationModel):
    """A member bound from the configuration source."""

    member: str = Field(min_length=1)
    type: str = Field(min_length=1)
    key: str | None = None
    """Configuration key path; inferred from the type name when omitted."""

    default: Any = None
    required: bool = True
    supports_reloading: bool = False
    is_static: bool = False


class TypeDeclaration(_DeclarationModel):
    """Declarations collected from one annotated type."""

    name: str = Field(min_length=1)
    lifetime: Lifetime = Lifetime.UNSPECIFIED
    base_type: str | None = None
    interfaces: list[str] = Field(default_factory=list)

    is_partial: bool = True
    """False when the type cannot be extended with a generated constructor."""

    is_abstract: bool = False
    is_external: bool = False
    is_hosted_service: bool = False
    host_managed: bool = False
    """Hosted service whose lifetime the host manages itself."""

    inject_fields: list[InjectFieldDeclaration] = Field(default_factory=list)
    depends_on: list[DependsOnDeclaration] = Field(default_factory=list)
    registration: RegistrationDirectives = Field(
        default_factory=RegistrationDirectives
    )
    conditions: list[ConditionDeclaration] = Field(default_factory=list)
    configuration: list[ConfigurationBindingDeclaration] = Field(
        default_factory=list
    )

    referenced_members: list[str] | None = None
    """Members referenced by the type body; None when unknown."""

    @property
    def has_dependencies(self) -> bool:
        """Whether the type needs a synthesized constructor."""
        return bool(self.inject_fields or self.depends_on or self.configuration)

    @property
    def has_registration_intent(self) -> bool:
        """Whether any declaration asks for the type to be registered."""
        directives = self.registration
        return (
            self.lifetime is not Lifetime.UNSPECIFIED
            or self.is_hosted_service
            or bool(self.conditions)
            or bool(directives.register_as)
            or directives.register_as_all
            or self.has_dependencies
        )


class DeclarationSnapshot(_DeclarationModel):
    """All type declarations of one compilation snapshot."""

    name: str | None = None
    description: str | None = None
    types: list[TypeDeclaration] = Field(default_factory=list)
