"""Constructor synthesis: one ordered, collision-free parameter list per type.

Parameter order is ancestor parameters first (forwarded to the base
constructor), then explicit dependencies in declaration order, then injected
fields in declaration order. Configuration-bound members share a single
configuration source parameter appended last.

Precedence when one target type is declared more than once:

============================================  ==========================  =======
Situation                                      Result                      Code
============================================  ==========================  =======
explicit name equals an injected field name    one parameter, field wins   (none)
explicit name differs from the injected field  explicit dropped            IOC007
same type in two explicit declarations         first kept                  IOC006
same type twice in one explicit declaration    first kept                  IOC008
own dependency already supplied by a base      base parameter reused       IOC040
different types produce one parameter name     later one gets a suffix     IOC041
============================================  ==========================  =======
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ioc_planner.cancellation import CancellationToken, check_cancelled
from ioc_planner.catalog import (
    BindingKind,
    DependencyRef,
    DependencySource,
    ServiceCatalog,
    ServiceDescriptor,
)
from ioc_planner.configuration import AnalysisConfiguration
from ioc_planner.diagnostics import (
    DUPLICATE_EXPLICIT_DEPENDENCY,
    DUPLICATE_IN_DECLARATION,
    EXPLICIT_CONFLICTS_WITH_FIELD,
    PARAMETER_NAME_COLLISION,
    REDUNDANT_INHERITED_DEPENDENCY,
    UNUSED_DEPENDENCY,
    Diagnostic,
)
from ioc_planner.models import FieldAccess

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Parameter:
    """A constructor parameter."""

    type: str
    name: str
    source: DependencySource
    optional: bool = False
    inherited: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "source": self.source.value,
            "optional": self.optional,
            "inherited": self.inherited,
        }


@dataclass(frozen=True)
class FieldAssignment:
    """Assign a constructor parameter to a member."""

    member: str
    parameter: str


@dataclass(frozen=True)
class GeneratedField:
    """A member the back end must declare for an explicit dependency."""

    name: str
    type: str
    access: FieldAccess


@dataclass(frozen=True)
class ConfigurationAssignment:
    """Bind a member from the configuration source parameter."""

    member: str
    type: str
    key: str
    kind: BindingKind
    parameter: str
    default: Any = None
    required: bool = True
    supports_reloading: bool = False


@dataclass(frozen=True)
class BaseConstructorCall:
    """Forward inherited parameters to the base type's generated constructor."""

    base_type: str
    arguments: tuple[str, ...]


@dataclass(frozen=True)
class ConstructorPlan:
    """Everything the back end needs to emit one generated constructor."""

    type_name: str
    parameters: tuple[Parameter, ...]
    assignments: tuple[FieldAssignment, ...] = ()
    generated_fields: tuple[GeneratedField, ...] = ()
    configuration_parameter: Parameter | None = None
    configuration_assignments: tuple[ConfigurationAssignment, ...] = ()
    base_call: BaseConstructorCall | None = None

    @property
    def signature(self) -> tuple[Parameter, ...]:
        """Full parameter list, including the configuration source."""
        if self.configuration_parameter is None:
            return self.parameters
        return (*self.parameters, self.configuration_parameter)

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.signature)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "type_name": self.type_name,
            "parameters": [p.to_dict() for p in self.signature],
            "assignments": [
                {"member": a.member, "parameter": a.parameter}
                for a in self.assignments
            ],
            "generated_fields": [
                {"name": f.name, "type": f.type, "access": f.access}
                for f in self.generated_fields
            ],
            "configuration_assignments": [
                {
                    "member": c.member,
                    "type": c.type,
                    "key": c.key,
                    "kind": c.kind.value,
                    "parameter": c.parameter,
                    "default": c.default,
                    "required": c.required,
                    "supports_reloading": c.supports_reloading,
                }
                for c in self.configuration_assignments
            ],
            "base_call": (
                None
                if self.base_call is None
                else {
                    "base_type": self.base_call.base_type,
                    "arguments": list(self.base_call.arguments),
                }
            ),
        }


@dataclass(frozen=True)
class ConstructorSynthesis:
    """Constructor plans in catalog order plus their diagnostics."""

    plans: tuple[ConstructorPlan, ...]
    diagnostics: tuple[Diagnostic, ...]

    def plan_for(self, type_name: str) -> ConstructorPlan | None:
        """Return the plan for ``type_name``, if the type gets a constructor."""
        for plan in self.plans:
            if plan.type_name == type_name:
                return plan
        return None


@dataclass(frozen=True)
class _Entry:
    """An own dependency surviving de-duplication."""

    ref: DependencyRef
    generated: bool


class ConstructorSynthesizer:
    """Synthesizes constructor plans for every descriptor of a catalog."""

    def __init__(self, configuration: AnalysisConfiguration | None = None) -> None:
        self._config = configuration or AnalysisConfiguration()

    def synthesize(
        self,
        catalog: ServiceCatalog,
        cancellation: CancellationToken | None = None,
    ) -> ConstructorSynthesis:
        """Build constructor plans, base types before derived types.

        Args:
            catalog: The catalog snapshot.
            cancellation: Optional token polled between descriptors.

        Returns:
            Plans for every type that needs a constructor, in catalog order.

        Raises:
            AnalysisCancelledError: If cancellation is requested.

        """
        done: dict[str, ConstructorPlan | None] = {}
        diagnostics_by_type: dict[str, list[Diagnostic]] = {}

        for descriptor in catalog:
            check_cancelled(cancellation)
            walk = catalog.ancestors(
                descriptor.type_id, self._config.max_inheritance_depth
            )
            for item in (*reversed(walk.ancestors), descriptor):
                if item.type_id in done:
                    continue
                base_plan = done.get(item.base_type_id or "")
                diagnostics = diagnostics_by_type.setdefault(item.type_id, [])
                done[item.type_id] = self._plan(item, base_plan, diagnostics)

        plans = tuple(
            plan for d in catalog if (plan := done.get(d.type_id)) is not None
        )
        diagnostics = tuple(
            diagnostic
            for d in catalog
            for diagnostic in diagnostics_by_type.get(d.type_id, ())
        )
        logger.debug("Synthesized %d constructor plans", len(plans))
        return ConstructorSynthesis(plans, diagnostics)

    def _plan(
        self,
        descriptor: ServiceDescriptor,
        base_plan: ConstructorPlan | None,
        diagnostics: list[Diagnostic],
    ) -> ConstructorPlan | None:
        type_id = descriptor.type_id
        entries = self._merge_own_dependencies(descriptor, diagnostics)

        parameters: list[Parameter] = []
        if base_plan is not None:
            parameters.extend(
                Parameter(p.type, p.name, p.source, p.optional, inherited=True)
                for p in base_plan.signature
            )
        inherited_by_type = {p.type: p for p in parameters}
        used_names = {p.name: p.type for p in parameters}

        assignments: list[FieldAssignment] = []
        kept: list[_Entry] = []
        for entry in entries:
            ref = entry.ref
            supplied = inherited_by_type.get(ref.declared_type)
            if supplied is None or base_plan is None:
                kept.append(entry)
                continue
            diagnostics.append(
                REDUNDANT_INHERITED_DEPENDENCY.create(
                    type_id,
                    type_id,
                    ref.declared_type,
                    base_plan.type_name,
                    involved_types=(type_id, base_plan.type_name),
                )
            )
            if not entry.generated:
                assignments.append(FieldAssignment(ref.member_name, supplied.name))

        # Existing members claim their names before synthesized ones
        names: dict[int, str] = {}
        for claim_generated in (False, True):
            for position, entry in enumerate(kept):
                if entry.generated is claim_generated:
                    names[position] = self._unique_name(
                        type_id,
                        entry.ref.parameter_name,
                        entry.ref.declared_type,
                        used_names,
                        diagnostics,
                    )

        generated_fields: list[GeneratedField] = []
        own_members: list[tuple[DependencyRef, str]] = []
        for position, entry in enumerate(kept):
            ref = entry.ref
            name = names[position]
            member = ref.member_name
            if entry.generated:
                member += name[len(ref.parameter_name) :]
                generated_fields.append(
                    GeneratedField(member, ref.declared_type, ref.access)
                )
            parameters.append(
                Parameter(ref.declared_type, name, ref.source, ref.optional)
            )
            assignments.append(FieldAssignment(member, name))
            own_members.append((ref, member))

        configuration_parameter, configuration_assignments = self._configuration(
            descriptor, parameters, used_names, diagnostics
        )
        if not parameters and not configuration_assignments:
            return None

        self._report_unused(descriptor, own_members, diagnostics)

        base_call = None
        if base_plan is not None and base_plan.signature:
            base_call = BaseConstructorCall(
                base_plan.type_name, tuple(p.name for p in base_plan.signature)
            )

        return ConstructorPlan(
            type_name=type_id,
            parameters=tuple(parameters),
            assignments=tuple(assignments),
            generated_fields=tuple(generated_fields),
            configuration_parameter=configuration_parameter,
            configuration_assignments=configuration_assignments,
            base_call=base_call,
        )

    @staticmethod
    def _merge_own_dependencies(
        descriptor: ServiceDescriptor, diagnostics: list[Diagnostic]
    ) -> list[_Entry]:
        type_id = descriptor.type_id
        fields = descriptor.field_dependencies
        consumed: set[int] = set()
        entries: list[_Entry] = []
        seen: dict[str, DependencyRef] = {}

        for ref in descriptor.explicit_dependencies:
            previous = seen.get(ref.declared_type)
            if previous is not None:
                duplicate = (
                    DUPLICATE_IN_DECLARATION
                    if previous.declaration_index == ref.declaration_index
                    else DUPLICATE_EXPLICIT_DEPENDENCY
                )
                diagnostics.append(
                    duplicate.create(type_id, type_id, ref.declared_type)
                )
                continue
            seen[ref.declared_type] = ref

            matching = [
                (position, field)
                for position, field in enumerate(fields)
                if field.declared_type == ref.declared_type and position not in consumed
            ]
            same_name = next(
                (
                    (position, field)
                    for position, field in matching
                    if field.member_name == ref.member_name
                ),
                None,
            )
            if same_name is not None:
                consumed.add(same_name[0])
                entries.append(_Entry(same_name[1], generated=False))
            elif matching:
                diagnostics.append(
                    EXPLICIT_CONFLICTS_WITH_FIELD.create(
                        type_id, type_id, ref.declared_type, matching[0][1].member_name
                    )
                )
            else:
                entries.append(_Entry(ref, generated=True))

        entries.extend(
            _Entry(field, generated=False)
            for position, field in enumerate(fields)
            if position not in consumed
        )
        return entries

    @staticmethod
    def _unique_name(
        type_id: str,
        candidate: str,
        parameter_type: str,
        used_names: dict[str, str],
        diagnostics: list[Diagnostic],
    ) -> str:
        if candidate not in used_names:
            used_names[candidate] = parameter_type
            return candidate

        suffix = 2
        while f"{candidate}{suffix}" in used_names:
            suffix += 1
        renamed = f"{candidate}{suffix}"
        diagnostics.append(
            PARAMETER_NAME_COLLISION.create(
                type_id,
                type_id,
                candidate,
                used_names[candidate],
                parameter_type,
                renamed,
            )
        )
        used_names[renamed] = parameter_type
        return renamed

    def _configuration(
        self,
        descriptor: ServiceDescriptor,
        parameters: list[Parameter],
        used_names: dict[str, str],
        diagnostics: list[Diagnostic],
    ) -> tuple[Parameter | None, tuple[ConfigurationAssignment, ...]]:
        bindings = [
            ref.binding
            for ref in descriptor.configuration_dependencies
            if ref.binding is not None
        ]
        if not bindings:
            return None, ()

        source_type = self._config.configuration_source_type
        existing = next((p for p in parameters if p.type == source_type), None)
        if existing is not None:
            parameter_name = existing.name
            configuration_parameter = None
        else:
            parameter_name = self._unique_name(
                descriptor.type_id,
                self._config.configuration_parameter_name,
                source_type,
                used_names,
                diagnostics,
            )
            configuration_parameter = Parameter(
                source_type, parameter_name, DependencySource.CONFIGURATION
            )

        assignments = tuple(
            ConfigurationAssignment(
                member=binding.member,
                type=binding.type,
                key=binding.key,
                kind=binding.kind,
                parameter=parameter_name,
                default=binding.default,
                required=binding.required,
                supports_reloading=binding.supports_reloading,
            )
            for binding in bindings
        )
        return configuration_parameter, assignments

    @staticmethod
    def _report_unused(
        descriptor: ServiceDescriptor,
        own_members: list[tuple[DependencyRef, str]],
        diagnostics: list[Diagnostic],
    ) -> None:
        referenced = descriptor.referenced_members
        if referenced is None:
            return
        for ref, member in own_members:
            # Non-private members may be consumed by subclasses
            if ref.access != "private" or member in referenced:
                continue
            diagnostics.append(
                UNUSED_DEPENDENCY.create(descriptor.type_id, descriptor.type_id, member)
            )
