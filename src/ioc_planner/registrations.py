"""Container registration planning.

For each registrable descriptor the synthesizer works out the service types
it is registered under and the shape of each registration:

- Separate sharing: one direct entry per interface, each constructing its own
  instance, plus a concrete entry when the mode includes the concrete type.
- Shared sharing: one concrete entry plus one factory entry per interface
  that resolves the already-registered concrete instance.
- Types without interfaces always get a concrete-only entry.

Guarded entries for the same service type form one if/else-if chain in
catalog order, so at most one implementation is selected at runtime.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any

from ioc_planner.cancellation import CancellationToken, check_cancelled
from ioc_planner.catalog import DeclarationKind, ServiceCatalog, ServiceDescriptor
from ioc_planner.conditions import Predicate, PredicateCompilation
from ioc_planner.configuration import AnalysisConfiguration
from ioc_planner.diagnostics import (
    DUPLICATE_REGISTER_AS,
    REGISTER_AS_ALL_WITHOUT_LIFETIME,
    REGISTER_AS_NOT_IMPLEMENTED,
    SKIPPED_INTERFACE_NOT_IMPLEMENTED,
    Diagnostic,
)
from ioc_planner.models import InstanceSharing, Lifetime, RegistrationMode

logger = logging.getLogger(__name__)


class RegistrationShape(StrEnum):
    """How a registration entry produces its instance."""

    DIRECT = "direct"
    FACTORY = "factory"
    HOSTED = "hosted"


@dataclass(frozen=True)
class ChainPosition:
    """Position of a guarded entry in its if/else-if chain."""

    key: str
    index: int
    length: int

    @property
    def is_else(self) -> bool:
        return self.index > 0


@dataclass(frozen=True)
class RegistrationEntry:
    """One container registration.

    Attributes:
        service_type: Interface registered, or None for the concrete type.
        implementation_type: Concrete type providing the instance.
        lifetime: Registration lifetime.
        shape: Direct construction, factory delegate or hosted service.
        guard: Predicate that must hold for the registration to apply.
        chain: Position in the if/else-if chain of guarded entries.

    """

    service_type: str | None
    implementation_type: str
    lifetime: Lifetime
    shape: RegistrationShape
    guard: Predicate | None = None
    chain: ChainPosition | None = None

    @property
    def chain_key(self) -> str:
        """Service type the entry competes for."""
        return self.service_type or self.implementation_type

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "service_type": self.service_type,
            "implementation_type": self.implementation_type,
            "lifetime": self.lifetime.value,
            "shape": self.shape.value,
            "guard": None if self.guard is None else self.guard.render(),
            "chain": (
                None
                if self.chain is None
                else {"key": self.chain.key, "index": self.chain.index}
            ),
        }


@dataclass(frozen=True)
class ConditionalChain:
    """Guarded entries competing for one service type."""

    key: str
    branches: tuple[RegistrationEntry, ...]


@dataclass(frozen=True)
class RegistrationPlan:
    """Ordered registration entries plus the diagnostics raised planning them.

    Unconditional entries come first in catalog order, followed by guarded
    entries grouped by chain in order of first appearance.
    """

    entries: tuple[RegistrationEntry, ...]
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def unconditional(self) -> tuple[RegistrationEntry, ...]:
        return tuple(e for e in self.entries if e.guard is None)

    @property
    def chains(self) -> tuple[ConditionalChain, ...]:
        """Guarded entries grouped by chain."""
        grouped: dict[str, list[RegistrationEntry]] = {}
        for entry in self.entries:
            if entry.chain is not None:
                grouped.setdefault(entry.chain.key, []).append(entry)
        return tuple(ConditionalChain(k, tuple(v)) for k, v in grouped.items())

    def entries_for(self, implementation_type: str) -> tuple[RegistrationEntry, ...]:
        """Entries provided by one concrete type."""
        return tuple(
            e for e in self.entries if e.implementation_type == implementation_type
        )

    def to_dict(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self.entries]


class RegistrationSynthesizer:
    """Builds the registration plan for a catalog."""

    def __init__(self, configuration: AnalysisConfiguration | None = None) -> None:
        """Initialise the synthesizer.

        Args:
            configuration: Analysis configuration; defaults are used if None.

        """
        self._config = configuration or AnalysisConfiguration()

    def synthesize(
        self,
        catalog: ServiceCatalog,
        predicates: PredicateCompilation,
        cancellation: CancellationToken | None = None,
    ) -> RegistrationPlan:
        """Plan registrations for every registrable descriptor.

        Args:
            catalog: The catalog snapshot.
            predicates: Compiled guards of conditional descriptors.
            cancellation: Optional token polled between descriptors.

        Returns:
            The registration plan.

        Raises:
            AnalysisCancelledError: If cancellation is requested.

        """
        unconditional: list[RegistrationEntry] = []
        guarded: dict[str, list[RegistrationEntry]] = {}
        diagnostics: list[Diagnostic] = []

        for descriptor in catalog:
            check_cancelled(cancellation)
            if descriptor.kind in (
                DeclarationKind.ABSTRACT_BASE,
                DeclarationKind.UNREGISTERED,
            ):
                continue

            guard = None
            if descriptor.is_conditional:
                guard = predicates.predicate_for(descriptor.type_id)
                if guard is None:
                    logger.debug(
                        "Skipping %s: no valid condition remained",
                        descriptor.type_id,
                    )
                    continue

            for entry in self._entries(catalog, descriptor, diagnostics):
                if guard is None:
                    unconditional.append(entry)
                else:
                    guarded.setdefault(entry.chain_key, []).append(
                        replace(entry, guard=guard)
                    )

        entries = list(unconditional)
        for key, branches in guarded.items():
            entries.extend(
                replace(entry, chain=ChainPosition(key, index, len(branches)))
                for index, entry in enumerate(branches)
            )

        logger.debug(
            "Planned %d registrations (%d conditional chains)",
            len(entries),
            len(guarded),
        )
        return RegistrationPlan(tuple(entries), tuple(diagnostics))

    def _entries(
        self,
        catalog: ServiceCatalog,
        descriptor: ServiceDescriptor,
        diagnostics: list[Diagnostic],
    ) -> list[RegistrationEntry]:
        type_id = descriptor.type_id
        lifetime = descriptor.effective_lifetime

        if descriptor.kind is DeclarationKind.HOSTED_SERVICE:
            return [
                RegistrationEntry(None, type_id, lifetime, RegistrationShape.HOSTED)
            ]

        interfaces, include_concrete = self._service_types(
            catalog, descriptor, diagnostics
        )
        if not interfaces:
            return [
                RegistrationEntry(None, type_id, lifetime, RegistrationShape.DIRECT)
            ]

        if self._sharing(descriptor) is InstanceSharing.SHARED:
            return [
                RegistrationEntry(None, type_id, lifetime, RegistrationShape.DIRECT),
                *(
                    RegistrationEntry(i, type_id, lifetime, RegistrationShape.FACTORY)
                    for i in interfaces
                ),
            ]

        entries = [
            RegistrationEntry(i, type_id, lifetime, RegistrationShape.DIRECT)
            for i in interfaces
        ]
        if include_concrete:
            entries.insert(
                0, RegistrationEntry(None, type_id, lifetime, RegistrationShape.DIRECT)
            )
        return entries

    def _service_types(
        self,
        catalog: ServiceCatalog,
        descriptor: ServiceDescriptor,
        diagnostics: list[Diagnostic],
    ) -> tuple[tuple[str, ...], bool]:
        """Return the interfaces to register and whether to add the concrete type."""
        type_id = descriptor.type_id
        settings = descriptor.registration
        implemented = catalog.all_interfaces(
            type_id, self._config.max_inheritance_depth
        )

        if (
            settings.register_as_all
            and descriptor.declared_lifetime is Lifetime.UNSPECIFIED
        ):
            diagnostics.append(
                REGISTER_AS_ALL_WITHOUT_LIFETIME.create(type_id, type_id)
            )

        for skipped in settings.skip:
            if skipped not in implemented:
                diagnostics.append(
                    SKIPPED_INTERFACE_NOT_IMPLEMENTED.create(
                        type_id, type_id, skipped
                    )
                )

        if settings.register_as:
            requested: list[str] = []
            for interface in settings.register_as:
                if interface in requested:
                    diagnostics.append(
                        DUPLICATE_REGISTER_AS.create(type_id, type_id, interface)
                    )
                elif interface not in implemented:
                    diagnostics.append(
                        REGISTER_AS_NOT_IMPLEMENTED.create(
                            type_id,
                            type_id,
                            interface,
                            involved_types=(type_id, interface),
                        )
                    )
                else:
                    requested.append(interface)
            interfaces: tuple[str, ...] = tuple(requested)
            include_concrete = False
        else:
            match settings.mode:
                case RegistrationMode.DIRECT_ONLY:
                    interfaces, include_concrete = (), True
                case RegistrationMode.EXCLUSIONARY:
                    interfaces, include_concrete = implemented, False
                case _:
                    interfaces, include_concrete = implemented, True

        skip = set(settings.skip)
        return tuple(i for i in interfaces if i not in skip), include_concrete

    @staticmethod
    def _sharing(descriptor: ServiceDescriptor) -> InstanceSharing:
        settings = descriptor.registration
        if settings.instance_sharing is not None:
            return settings.instance_sharing
        if descriptor.effective_lifetime is Lifetime.SINGLETON:
            return InstanceSharing.SHARED
        if settings.mode is RegistrationMode.EXCLUSIONARY:
            return InstanceSharing.SHARED
        return InstanceSharing.SEPARATE


def registration_summary(plan: RegistrationPlan) -> Mapping[str, int]:
    """Count entries per shape, for logging and CLI summaries."""
    counts = {shape.value: 0 for shape in RegistrationShape}
    for entry in plan.entries:
        counts[entry.shape.value] += 1
    return counts
