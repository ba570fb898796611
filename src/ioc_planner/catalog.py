"""Service catalog: normalised, immutable descriptors for declared types.

The catalog builder turns raw ``TypeDeclaration`` records into
``ServiceDescriptor`` objects. Structurally invalid declarations are reported
and excluded without affecting the rest of the snapshot. Every later stage
works from the resulting ``ServiceCatalog`` only.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ioc_planner import naming
from ioc_planner.cancellation import CancellationToken, check_cancelled
from ioc_planner.configuration import AnalysisConfiguration
from ioc_planner.diagnostics import (
    CANNOT_GENERATE_CONSTRUCTOR,
    DUPLICATE_TYPE_DECLARATION,
    INVALID_CONFIGURATION_KEY,
    STATIC_CONFIGURATION_MEMBER,
    Diagnostic,
)
from ioc_planner.models import (
    ConditionDeclaration,
    ConfigurationBindingDeclaration,
    DeclarationSnapshot,
    FieldAccess,
    InstanceSharing,
    Lifetime,
    RegistrationMode,
    TypeDeclaration,
)

logger = logging.getLogger(__name__)

_VALUE_TYPES = frozenset(
    {
        "bool",
        "byte",
        "char",
        "DateTime",
        "DateTimeOffset",
        "decimal",
        "double",
        "float",
        "Guid",
        "int",
        "long",
        "short",
        "string",
        "TimeSpan",
        "uint",
        "ulong",
        "Uri",
    }
)
_OPTIONS_TYPES = frozenset({"IOptions", "IOptionsMonitor", "IOptionsSnapshot"})


class DeclarationKind(StrEnum):
    """Shape of a declared type, resolved once when the catalog is built."""

    SERVICE = "service"
    CONDITIONAL_SERVICE = "conditional_service"
    HOSTED_SERVICE = "hosted_service"
    ABSTRACT_BASE = "abstract_base"
    UNREGISTERED = "unregistered"


class DependencySource(StrEnum):
    """Where a dependency was declared."""

    EXPLICIT = "explicit"
    FIELD = "field"
    CONFIGURATION = "configuration"


class BindingKind(StrEnum):
    """How a configuration-bound member is read."""

    VALUE = "value"
    SECTION = "section"
    OPTIONS = "options"


@dataclass(frozen=True)
class ConfigurationBinding:
    """A validated configuration binding."""

    member: str
    type: str
    key: str
    kind: BindingKind
    default: Any = None
    required: bool = True
    supports_reloading: bool = False


@dataclass(frozen=True)
class DependencyRef:
    """One declared dependency of a descriptor.

    Attributes:
        source: Declaration kind that produced the dependency.
        declared_type: The type exactly as declared.
        target_type: Element type for collection-shaped dependencies,
            otherwise the declared type.
        target_id: Identifier of the catalog descriptor satisfying the
            dependency, or None for unresolved or external targets.
        is_collection: Many-of semantics.
        optional: The dependency may be absent at runtime.
        member_name: Existing field or synthesized member name.
        parameter_name: Default constructor parameter name.
        external: Declared as supplied from outside the catalog.
        access: Access level of the member.
        declaration_index: Position of the originating declaration among
            declarations of the same source kind.
        binding: Configuration binding for configuration dependencies.

    """

    source: DependencySource
    declared_type: str
    target_type: str
    target_id: str | None
    is_collection: bool
    optional: bool
    member_name: str
    parameter_name: str
    external: bool = False
    access: FieldAccess = "private"
    declaration_index: int = 0
    binding: ConfigurationBinding | None = None

    @property
    def is_resolved(self) -> bool:
        """Whether the dependency points at a catalog descriptor."""
        return self.target_id is not None

    @property
    def is_graph_edge(self) -> bool:
        """Whether the dependency contributes an edge to the dependency graph."""
        return (
            self.source is not DependencySource.CONFIGURATION
            and not self.is_collection
            and self.target_id is not None
        )


@dataclass(frozen=True)
class ConditionSpec:
    """Normalised conditional-registration criteria of one declaration.

    Lists are split on commas and trimmed. Combinations are not validated
    here; the predicate compiler reports malformed criteria.
    """

    environments: tuple[str, ...] = ()
    excluded_environments: tuple[str, ...] = ()
    config_key: str | None = None
    equals: str | None = None
    not_equals: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        """Whether no criterion at all was declared."""
        return not (
            self.environments
            or self.excluded_environments
            or self.config_key
            or self.equals is not None
            or self.not_equals
        )


@dataclass(frozen=True)
class RegistrationSettings:
    """Normalised registration directives."""

    register_as: tuple[str, ...] = ()
    register_as_all: bool = False
    mode: RegistrationMode = RegistrationMode.ALL
    instance_sharing: InstanceSharing | None = None
    skip: tuple[str, ...] = ()


@dataclass(frozen=True)
class ServiceDescriptor:
    """Normalised record describing one registrable or injectable type."""

    type_id: str
    kind: DeclarationKind
    declared_lifetime: Lifetime
    effective_lifetime: Lifetime
    is_external: bool = False
    is_conditional: bool = False
    is_abstract: bool = False
    host_managed: bool = False
    base_type_id: str | None = None
    implemented_interfaces: tuple[str, ...] = ()
    registration: RegistrationSettings = RegistrationSettings()
    conditions: tuple[ConditionSpec, ...] = ()
    dependencies: tuple[DependencyRef, ...] = ()
    referenced_members: frozenset[str] | None = None

    @property
    def explicit_dependencies(self) -> tuple[DependencyRef, ...]:
        """Dependencies from explicit declarations, in declaration order."""
        return self._by_source(DependencySource.EXPLICIT)

    @property
    def field_dependencies(self) -> tuple[DependencyRef, ...]:
        """Dependencies from injected fields, in declaration order."""
        return self._by_source(DependencySource.FIELD)

    @property
    def configuration_dependencies(self) -> tuple[DependencyRef, ...]:
        """Configuration-bound members, in declaration order."""
        return self._by_source(DependencySource.CONFIGURATION)

    @property
    def graph_dependencies(self) -> tuple[DependencyRef, ...]:
        """Dependencies that become dependency-graph edges."""
        return tuple(ref for ref in self.dependencies if ref.is_graph_edge)

    @property
    def is_hosted_service(self) -> bool:
        return self.kind is DeclarationKind.HOSTED_SERVICE

    def _by_source(self, source: DependencySource) -> tuple[DependencyRef, ...]:
        return tuple(ref for ref in self.dependencies if ref.source is source)


@dataclass(frozen=True)
class AncestorWalk:
    """Result of a bounded walk up a base-type chain."""

    ancestors: tuple[ServiceDescriptor, ...]
    truncated: bool


class ServiceCatalog:
    """Immutable, ordered snapshot of every accepted descriptor.

    Descriptors keep snapshot declaration order, and their position is the
    integer index used by the dependency graph.
    """

    def __init__(self, descriptors: Sequence[ServiceDescriptor]) -> None:
        """Create a catalog.

        Args:
            descriptors: Descriptors in declaration order. Type identifiers
                must be unique.

        Raises:
            ValueError: If two descriptors share a type identifier.

        """
        self._descriptors = tuple(descriptors)
        self._index: dict[str, int] = {}
        for position, descriptor in enumerate(self._descriptors):
            if descriptor.type_id in self._index:
                raise ValueError(f"Duplicate descriptor: {descriptor.type_id}")
            self._index[descriptor.type_id] = position

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self) -> Iterator[ServiceDescriptor]:
        return iter(self._descriptors)

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._index

    def __getitem__(self, position: int) -> ServiceDescriptor:
        return self._descriptors[position]

    @property
    def descriptors(self) -> tuple[ServiceDescriptor, ...]:
        return self._descriptors

    @property
    def type_ids(self) -> tuple[str, ...]:
        return tuple(d.type_id for d in self._descriptors)

    def get(self, type_id: str | None) -> ServiceDescriptor | None:
        """Return the descriptor for ``type_id``, if it is in the catalog."""
        if type_id is None:
            return None
        position = self._index.get(type_id)
        return None if position is None else self._descriptors[position]

    def index_of(self, type_id: str) -> int:
        """Return the arena index of ``type_id``.

        Raises:
            KeyError: If the type is not in the catalog.

        """
        return self._index[type_id]

    def ancestors(self, type_id: str, max_depth: int) -> AncestorWalk:
        """Walk the base-type chain of ``type_id``, nearest ancestor first.

        The walk stops at the first base type outside the catalog, after
        ``max_depth`` steps, or when it would revisit a type.

        Args:
            type_id: Type whose ancestors to collect.
            max_depth: Maximum number of base-type steps.

        Returns:
            The ancestors found and whether the walk was cut short.

        """
        descriptor = self.get(type_id)
        if descriptor is None:
            return AncestorWalk((), False)

        seen = {type_id}
        found: list[ServiceDescriptor] = []
        base_id = descriptor.base_type_id
        while base_id is not None:
            base = self.get(base_id)
            if base is None:
                break
            if base_id in seen or len(found) >= max_depth:
                return AncestorWalk(tuple(found), True)
            seen.add(base_id)
            found.append(base)
            base_id = base.base_type_id
        return AncestorWalk(tuple(found), False)

    def all_interfaces(self, type_id: str, max_depth: int) -> tuple[str, ...]:
        """Own interfaces followed by inherited ones, without duplicates."""
        descriptor = self.get(type_id)
        if descriptor is None:
            return ()
        chain = (descriptor, *self.ancestors(type_id, max_depth).ancestors)
        return _unique(i for d in chain for i in d.implemented_interfaces)


@dataclass(frozen=True)
class CatalogBuildResult:
    """Catalog plus the diagnostics raised while building it."""

    catalog: ServiceCatalog
    diagnostics: tuple[Diagnostic, ...]


class CatalogBuilder:
    """Builds a ``ServiceCatalog`` from a declaration snapshot."""

    def __init__(self, configuration: AnalysisConfiguration | None = None) -> None:
        """Initialise the builder.

        Args:
            configuration: Analysis configuration; defaults are used if None.

        """
        self._config = configuration or AnalysisConfiguration()

    def build(
        self,
        snapshot: DeclarationSnapshot,
        cancellation: CancellationToken | None = None,
    ) -> CatalogBuildResult:
        """Normalise every declaration of the snapshot.

        Args:
            snapshot: Declarations from the front end.
            cancellation: Optional token polled between declarations.

        Returns:
            The catalog of accepted descriptors and all diagnostics.

        Raises:
            AnalysisCancelledError: If cancellation is requested.

        """
        diagnostics: list[Diagnostic] = []
        accepted: list[TypeDeclaration] = []
        seen: set[str] = set()

        for declaration in snapshot.types:
            check_cancelled(cancellation)
            if declaration.name in seen:
                diagnostics.append(
                    DUPLICATE_TYPE_DECLARATION.create(
                        declaration.name, declaration.name
                    )
                )
                continue
            seen.add(declaration.name)

            if declaration.has_dependencies and not declaration.is_partial:
                diagnostics.append(
                    CANNOT_GENERATE_CONSTRUCTOR.create(
                        declaration.name, declaration.name
                    )
                )
                continue
            accepted.append(declaration)

        resolver = _TargetResolver(accepted, self._config.max_inheritance_depth)
        descriptors: list[ServiceDescriptor] = []
        for declaration in accepted:
            check_cancelled(cancellation)
            descriptors.append(
                self._build_descriptor(declaration, resolver, diagnostics)
            )

        logger.debug(
            "Catalog built with %d descriptors (%d declarations excluded)",
            len(descriptors),
            len(snapshot.types) - len(descriptors),
        )
        return CatalogBuildResult(ServiceCatalog(descriptors), tuple(diagnostics))

    def _build_descriptor(
        self,
        declaration: TypeDeclaration,
        resolver: _TargetResolver,
        diagnostics: list[Diagnostic],
    ) -> ServiceDescriptor:
        kind = self._resolve_kind(declaration)
        dependencies = (
            *self._explicit_dependencies(declaration, resolver),
            *self._field_dependencies(declaration, resolver),
            *self._configuration_dependencies(declaration, diagnostics),
        )
        directives = declaration.registration

        return ServiceDescriptor(
            type_id=declaration.name,
            kind=kind,
            declared_lifetime=declaration.lifetime,
            effective_lifetime=self._effective_lifetime(declaration, kind),
            is_external=declaration.is_external,
            is_conditional=bool(declaration.conditions),
            is_abstract=declaration.is_abstract,
            host_managed=declaration.host_managed,
            base_type_id=declaration.base_type,
            implemented_interfaces=_unique(declaration.interfaces),
            registration=RegistrationSettings(
                register_as=tuple(directives.register_as),
                register_as_all=directives.register_as_all,
                mode=directives.mode,
                instance_sharing=directives.instance_sharing,
                skip=tuple(directives.skip),
            ),
            conditions=tuple(_condition_spec(c) for c in declaration.conditions),
            dependencies=dependencies,
            referenced_members=(
                None
                if declaration.referenced_members is None
                else frozenset(declaration.referenced_members)
            ),
        )

    @staticmethod
    def _resolve_kind(declaration: TypeDeclaration) -> DeclarationKind:
        if declaration.is_abstract:
            return DeclarationKind.ABSTRACT_BASE
        if declaration.is_hosted_service:
            return DeclarationKind.HOSTED_SERVICE
        if declaration.conditions:
            return DeclarationKind.CONDITIONAL_SERVICE
        if declaration.has_registration_intent:
            return DeclarationKind.SERVICE
        return DeclarationKind.UNREGISTERED

    def _effective_lifetime(
        self, declaration: TypeDeclaration, kind: DeclarationKind
    ) -> Lifetime:
        if declaration.lifetime is not Lifetime.UNSPECIFIED:
            return declaration.lifetime
        if kind is DeclarationKind.HOSTED_SERVICE:
            # Hosted registrations are owned by the host as single instances
            return Lifetime.SINGLETON
        return self._config.implicit_lifetime

    def _explicit_dependencies(
        self, declaration: TypeDeclaration, resolver: _TargetResolver
    ) -> list[DependencyRef]:
        refs: list[DependencyRef] = []
        for index, depends_on in enumerate(declaration.depends_on):
            for declared_type in depends_on.types:
                element = naming.collection_element_type(declared_type)
                target_type = element if element is not None else declared_type
                member = naming.member_name_for(
                    declared_type,
                    convention=depends_on.naming_convention,
                    strip_marker=depends_on.strip_interface_marker,
                    prefix=depends_on.prefix,
                    marker=self._config.interface_marker,
                )
                refs.append(
                    DependencyRef(
                        source=DependencySource.EXPLICIT,
                        declared_type=declared_type,
                        target_type=target_type,
                        target_id=(
                            None
                            if depends_on.external
                            else resolver.resolve(target_type)
                        ),
                        is_collection=element is not None,
                        optional=False,
                        member_name=member,
                        parameter_name=naming.parameter_name_for(member),
                        external=depends_on.external,
                        access="protected" if declaration.is_abstract else "private",
                        declaration_index=index,
                    )
                )
        return refs

    @staticmethod
    def _field_dependencies(
        declaration: TypeDeclaration, resolver: _TargetResolver
    ) -> list[DependencyRef]:
        refs: list[DependencyRef] = []
        for index, field in enumerate(declaration.inject_fields):
            element = naming.collection_element_type(field.type)
            target_type = element if element is not None else field.type
            refs.append(
                DependencyRef(
                    source=DependencySource.FIELD,
                    declared_type=field.type,
                    target_type=target_type,
                    target_id=resolver.resolve(target_type),
                    is_collection=field.collection or element is not None,
                    optional=field.optional,
                    member_name=field.name,
                    parameter_name=naming.parameter_name_for(field.name),
                    access=field.access,
                    declaration_index=index,
                )
            )
        return refs

    def _configuration_dependencies(
        self, declaration: TypeDeclaration, diagnostics: list[Diagnostic]
    ) -> list[DependencyRef]:
        refs: list[DependencyRef] = []
        for index, binding_declaration in enumerate(declaration.configuration):
            binding = self._binding(declaration.name, binding_declaration, diagnostics)
            if binding is None:
                continue
            refs.append(
                DependencyRef(
                    source=DependencySource.CONFIGURATION,
                    declared_type=binding.type,
                    target_type=binding.type,
                    target_id=None,
                    is_collection=False,
                    optional=not binding.required,
                    member_name=binding.member,
                    parameter_name=self._config.configuration_parameter_name,
                    declaration_index=index,
                    binding=binding,
                )
            )
        return refs

    @staticmethod
    def _binding(
        type_name: str,
        declaration: ConfigurationBindingDeclaration,
        diagnostics: list[Diagnostic],
    ) -> ConfigurationBinding | None:
        if declaration.is_static:
            diagnostics.append(
                STATIC_CONFIGURATION_MEMBER.create(
                    type_name, type_name, declaration.member
                )
            )
            return None

        kind = _binding_kind(declaration.type)
        key = declaration.key
        if key is None and kind is not BindingKind.VALUE:
            _, arguments = naming.split_generic(declaration.type)
            bound_type = (
                arguments[0]
                if kind is BindingKind.OPTIONS and arguments
                else declaration.type
            )
            key = naming.infer_section_name(bound_type)

        if key is None or not _is_valid_key(key):
            diagnostics.append(
                INVALID_CONFIGURATION_KEY.create(
                    type_name, type_name, key or "", declaration.member
                )
            )
            return None

        return ConfigurationBinding(
            member=declaration.member,
            type=declaration.type,
            key=key.strip(),
            kind=kind,
            default=declaration.default,
            required=declaration.required,
            supports_reloading=declaration.supports_reloading,
        )


class _TargetResolver:
    """Maps declared dependency types to catalog type identifiers.

    Closed generic targets such as ``IRepository<User>`` fall back to open
    generic declarations with the same base name and argument count, so
    ``Repository<T>`` implementing ``IRepository<T>`` satisfies them.
    """

    def __init__(
        self, declarations: Sequence[TypeDeclaration], max_depth: int
    ) -> None:
        self._names = {d.name for d in declarations}
        by_name = {d.name: d for d in declarations}
        self._implementers: dict[str, list[TypeDeclaration]] = {}
        self._open_types: dict[tuple[str, int], str] = {}
        self._open_implementers: dict[tuple[str, int], list[TypeDeclaration]] = {}

        for declaration in declarations:
            key = _generic_key(declaration.name)
            if key is not None:
                self._open_types.setdefault(key, declaration.name)
            if declaration.is_abstract:
                continue
            for interface in self._interfaces(declaration, by_name, max_depth):
                self._implementers.setdefault(interface, []).append(declaration)
                key = _generic_key(interface)
                if key is not None:
                    self._open_implementers.setdefault(key, []).append(declaration)

    @staticmethod
    def _interfaces(
        declaration: TypeDeclaration,
        by_name: dict[str, TypeDeclaration],
        max_depth: int,
    ) -> tuple[str, ...]:
        interfaces: list[str] = list(declaration.interfaces)
        seen = {declaration.name}
        base_name = declaration.base_type
        depth = 0
        while base_name is not None and base_name not in seen and depth < max_depth:
            base = by_name.get(base_name)
            if base is None:
                break
            seen.add(base_name)
            interfaces.extend(base.interfaces)
            base_name = base.base_type
            depth += 1
        return _unique(interfaces)

    def resolve(self, target_type: str) -> str | None:
        """Return the type identifier satisfying ``target_type``.

        Exact type matches win; otherwise the first unconditional
        implementer in declaration order, then the first implementer.
        Generic targets with no such match are looked up the same way
        among open generic declarations.
        """
        if target_type in self._names:
            return target_type
        implementers = self._implementers.get(target_type)
        if implementers:
            return _preferred(implementers)

        key = _generic_key(target_type)
        if key is None:
            return None
        if key in self._open_types:
            return self._open_types[key]
        open_implementers = self._open_implementers.get(key)
        if open_implementers:
            return _preferred(open_implementers)
        return None


def _generic_key(type_name: str) -> tuple[str, int] | None:
    base, arguments = naming.split_generic(type_name)
    if not arguments:
        return None
    return base, len(arguments)


def _preferred(implementers: Sequence[TypeDeclaration]) -> str:
    for declaration in implementers:
        if not declaration.conditions:
            return declaration.name
    return implementers[0].name


def _binding_kind(type_name: str) -> BindingKind:
    base, arguments = naming.split_generic(type_name)
    simple = base.rsplit(".", 1)[-1].rstrip("?")
    if simple in _OPTIONS_TYPES and arguments:
        return BindingKind.OPTIONS
    if simple in _VALUE_TYPES or type_name.endswith("[]"):
        return BindingKind.VALUE
    return BindingKind.SECTION


def _is_valid_key(key: str) -> bool:
    stripped = key.strip()
    return bool(stripped) and not (
        stripped.startswith(":") or stripped.endswith(":") or "::" in stripped
    )


def _condition_spec(declaration: ConditionDeclaration) -> ConditionSpec:
    config_key = (declaration.config_key or "").strip() or None
    return ConditionSpec(
        environments=_split_list(declaration.environment),
        excluded_environments=_split_list(declaration.not_environment),
        config_key=config_key,
        equals=declaration.equals,
        not_equals=_split_list(declaration.not_equals),
    )


def _split_list(value: str | None) -> tuple[str, ...]:
    if value is None:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _unique(items: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(items))
