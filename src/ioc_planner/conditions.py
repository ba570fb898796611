"""Compilation of conditional-registration criteria into predicates.

Within one condition declaration the environment allow-list is OR-ed, the
deny-list is negated and AND-ed, and configuration comparisons are AND-ed;
the categories are then AND-ed together. Several condition declarations on
one type are OR-ed.

Malformed clauses are reported and left out of the predicate. When nothing
valid remains the type has no predicate at all and is not registered
automatically.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import ClassVar, override

from ioc_planner.cancellation import CancellationToken, check_cancelled
from ioc_planner.catalog import ConditionSpec, ServiceCatalog, ServiceDescriptor
from ioc_planner.diagnostics import (
    CONDITIONAL_WITHOUT_LIFETIME,
    CONFIG_KEY_WITHOUT_OPERATOR,
    CONFLICTING_CONDITIONS,
    EMPTY_CONDITION,
    MULTIPLE_CONDITIONS,
    OPERATOR_WITHOUT_CONFIG_KEY,
    Diagnostic,
)
from ioc_planner.models import ConditionOperator, Lifetime

logger = logging.getLogger(__name__)


class Predicate(ABC):
    """Node of a compiled registration guard."""

    @abstractmethod
    def render(self) -> str:
        """Render the predicate as a deterministic expression string."""

    @abstractmethod
    def evaluate(
        self, environment: str | None, configuration: Mapping[str, str]
    ) -> bool:
        """Evaluate the predicate against a runtime environment.

        Args:
            environment: Current environment name, or None if unset.
            configuration: Flattened configuration values by key path.
                Missing keys read as empty strings.

        Returns:
            Whether the guarded registration applies.

        """


@dataclass(frozen=True)
class EnvironmentIs(Predicate):
    """Case-insensitive environment name comparison."""

    name: str

    @override
    def render(self) -> str:
        return f"env({json.dumps(self.name)})"

    @override
    def evaluate(
        self, environment: str | None, configuration: Mapping[str, str]
    ) -> bool:
        if environment is None:
            return False
        return environment.casefold() == self.name.casefold()


@dataclass(frozen=True)
class ConfigEquals(Predicate):
    """Case-insensitive equality against a configuration value."""

    operator: ClassVar[ConditionOperator] = ConditionOperator.EQUALS

    key: str
    value: str

    @override
    def render(self) -> str:
        return f"config({json.dumps(self.key)}) == {json.dumps(self.value)}"

    @override
    def evaluate(
        self, environment: str | None, configuration: Mapping[str, str]
    ) -> bool:
        return configuration.get(self.key, "").casefold() == self.value.casefold()


@dataclass(frozen=True)
class ConfigNotEquals(Predicate):
    """Ordinal inequality against a configuration value."""

    operator: ClassVar[ConditionOperator] = ConditionOperator.NOT_EQUALS

    key: str
    value: str

    @override
    def render(self) -> str:
        return f"config({json.dumps(self.key)}) != {json.dumps(self.value)}"

    @override
    def evaluate(
        self, environment: str | None, configuration: Mapping[str, str]
    ) -> bool:
        return configuration.get(self.key, "") != self.value


@dataclass(frozen=True)
class Not(Predicate):
    operand: Predicate

    @override
    def render(self) -> str:
        inner = self.operand.render()
        if isinstance(self.operand, (AllOf, AnyOf)):
            inner = f"({inner})"
        return f"!{inner}"

    @override
    def evaluate(
        self, environment: str | None, configuration: Mapping[str, str]
    ) -> bool:
        return not self.operand.evaluate(environment, configuration)


@dataclass(frozen=True)
class AllOf(Predicate):
    operands: tuple[Predicate, ...]

    @override
    def render(self) -> str:
        return " && ".join(
            f"({o.render()})" if isinstance(o, AnyOf) else o.render()
            for o in self.operands
        )

    @override
    def evaluate(
        self, environment: str | None, configuration: Mapping[str, str]
    ) -> bool:
        return all(o.evaluate(environment, configuration) for o in self.operands)


@dataclass(frozen=True)
class AnyOf(Predicate):
    operands: tuple[Predicate, ...]

    @override
    def render(self) -> str:
        return " || ".join(
            f"({o.render()})" if isinstance(o, AllOf) else o.render()
            for o in self.operands
        )

    @override
    def evaluate(
        self, environment: str | None, configuration: Mapping[str, str]
    ) -> bool:
        return any(o.evaluate(environment, configuration) for o in self.operands)


def all_of(operands: Sequence[Predicate]) -> Predicate | None:
    """AND operands together, collapsing trivial cases."""
    if not operands:
        return None
    if len(operands) == 1:
        return operands[0]
    return AllOf(tuple(operands))


def any_of(operands: Sequence[Predicate]) -> Predicate | None:
    """OR operands together, collapsing trivial cases."""
    if not operands:
        return None
    if len(operands) == 1:
        return operands[0]
    return AnyOf(tuple(operands))


@dataclass(frozen=True)
class PredicateCompilation:
    """Compiled predicates of every conditional descriptor."""

    predicates: Mapping[str, Predicate | None]
    diagnostics: tuple[Diagnostic, ...]

    def predicate_for(self, type_name: str) -> Predicate | None:
        return self.predicates.get(type_name)


class PredicateCompiler:
    """Compiles the condition declarations of conditional descriptors."""

    def compile_catalog(
        self,
        catalog: ServiceCatalog,
        cancellation: CancellationToken | None = None,
    ) -> PredicateCompilation:
        """Compile every conditional descriptor of the catalog.

        Args:
            catalog: The catalog snapshot.
            cancellation: Optional token polled between descriptors.

        Returns:
            Predicates keyed by type (None where nothing valid remained)
            and all diagnostics in catalog order.

        Raises:
            AnalysisCancelledError: If cancellation is requested.

        """
        predicates: dict[str, Predicate | None] = {}
        diagnostics: list[Diagnostic] = []
        for descriptor in catalog:
            check_cancelled(cancellation)
            if not descriptor.is_conditional:
                continue
            predicate, found = self.compile(descriptor)
            predicates[descriptor.type_id] = predicate
            diagnostics.extend(found)

        logger.debug("Compiled predicates for %d conditional types", len(predicates))
        return PredicateCompilation(predicates, tuple(diagnostics))

    def compile(
        self, descriptor: ServiceDescriptor
    ) -> tuple[Predicate | None, list[Diagnostic]]:
        """Compile the conditions of one descriptor.

        Args:
            descriptor: A descriptor with at least one condition.

        Returns:
            The predicate, or None when no valid clause remained, and the
            diagnostics raised while compiling.

        """
        type_id = descriptor.type_id
        diagnostics: list[Diagnostic] = []

        if descriptor.declared_lifetime is Lifetime.UNSPECIFIED:
            diagnostics.append(CONDITIONAL_WITHOUT_LIFETIME.create(type_id, type_id))
        if len(descriptor.conditions) > 1:
            diagnostics.append(
                MULTIPLE_CONDITIONS.create(
                    type_id, type_id, len(descriptor.conditions)
                )
            )

        alternatives: list[Predicate] = []
        for spec in descriptor.conditions:
            predicate = self._compile_spec(type_id, spec, diagnostics)
            if predicate is not None:
                alternatives.append(predicate)
        return any_of(alternatives), diagnostics

    def _compile_spec(
        self, type_id: str, spec: ConditionSpec, diagnostics: list[Diagnostic]
    ) -> Predicate | None:
        if spec.is_empty:
            diagnostics.append(EMPTY_CONDITION.create(type_id, type_id))
            return None

        clauses: list[Predicate] = []
        clauses.extend(self._environment_clauses(type_id, spec, diagnostics))
        clauses.extend(self._configuration_clauses(type_id, spec, diagnostics))
        return all_of(clauses)

    @staticmethod
    def _environment_clauses(
        type_id: str, spec: ConditionSpec, diagnostics: list[Diagnostic]
    ) -> list[Predicate]:
        excluded = {name.casefold() for name in spec.excluded_environments}
        overlap = [n for n in spec.environments if n.casefold() in excluded]
        if overlap:
            names = ", ".join(f"'{n}'" for n in overlap)
            diagnostics.append(
                CONFLICTING_CONDITIONS.create(
                    type_id,
                    type_id,
                    f"environment {names} is both required and excluded",
                )
            )

        clauses: list[Predicate] = []
        # Exclusion wins over inclusion for conflicting names
        allowed = [n for n in spec.environments if n.casefold() not in excluded]
        allow = any_of([EnvironmentIs(n) for n in allowed])
        if allow is not None:
            clauses.append(allow)
        clauses.extend(Not(EnvironmentIs(n)) for n in spec.excluded_environments)
        return clauses

    @staticmethod
    def _configuration_clauses(
        type_id: str, spec: ConditionSpec, diagnostics: list[Diagnostic]
    ) -> list[Predicate]:
        has_equals = spec.equals is not None
        has_not_equals = bool(spec.not_equals)
        key = spec.config_key

        operators = [
            operator
            for operator, present in (
                (ConditionOperator.EQUALS, has_equals),
                (ConditionOperator.NOT_EQUALS, has_not_equals),
            )
            if present
        ]

        if key is None:
            if operators:
                diagnostics.append(
                    OPERATOR_WITHOUT_CONFIG_KEY.create(
                        type_id, type_id, " and ".join(operators)
                    )
                )
            return []

        if not operators:
            diagnostics.append(
                CONFIG_KEY_WITHOUT_OPERATOR.create(type_id, type_id, key)
            )
            return []

        clauses: list[Predicate] = []
        if spec.equals is not None:
            if spec.equals in spec.not_equals:
                diagnostics.append(
                    CONFLICTING_CONDITIONS.create(
                        type_id,
                        type_id,
                        f"configuration key '{key}' must both equal and differ "
                        f"from '{spec.equals}'",
                    )
                )
            else:
                clauses.append(ConfigEquals(key, spec.equals))
        clauses.extend(ConfigNotEquals(key, value) for value in spec.not_equals)
        return clauses
