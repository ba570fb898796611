"""Lifetime validation: captive dependencies, hosted services, inheritance.

Rules:
- Singleton depending on Scoped, directly or transitively: Error per pair.
- Singleton depending directly on Transient: Warning per pair.
- Hosted services must be Singleton unless the host manages them.
- A derived type may not live shorter than any ancestor that declares a
  lifetime.

External descriptors are never validated themselves but still count as
targets. Abstract bases are not captive sources; their edges reach derived
types as inherited edges. All diagnostics attach to the dependent type and
never block plan synthesis.
"""

from __future__ import annotations

import logging
from collections import deque

from ioc_planner.cancellation import CancellationToken, check_cancelled
from ioc_planner.catalog import DeclarationKind, ServiceDescriptor
from ioc_planner.configuration import AnalysisConfiguration
from ioc_planner.diagnostics import (
    HOSTED_SERVICE_LIFETIME,
    INHERITANCE_LIFETIME,
    SINGLETON_DEPENDS_ON_SCOPED,
    SINGLETON_DEPENDS_ON_TRANSIENT,
    Diagnostic,
)
from ioc_planner.graph import DependencyGraph
from ioc_planner.models import Lifetime

logger = logging.getLogger(__name__)


class LifetimeValidator:
    """Validates service lifetimes over the dependency graph."""

    def __init__(self, configuration: AnalysisConfiguration | None = None) -> None:
        """Initialise the validator.

        Args:
            configuration: Analysis configuration; defaults are used if None.

        """
        self._config = configuration or AnalysisConfiguration()

    def validate(
        self,
        graph: DependencyGraph,
        cancellation: CancellationToken | None = None,
    ) -> tuple[Diagnostic, ...]:
        """Run every lifetime rule over every non-external descriptor.

        Args:
            graph: The dependency graph.
            cancellation: Optional token polled between descriptors.

        Returns:
            Diagnostics in arena order of the dependent descriptor.

        Raises:
            AnalysisCancelledError: If cancellation is requested.

        """
        diagnostics: list[Diagnostic] = []
        for index in range(graph.node_count):
            check_cancelled(cancellation)
            descriptor = graph.node(index)
            if descriptor.is_external:
                continue

            diagnostics.extend(self._hosted_service(descriptor))
            if (
                descriptor.effective_lifetime is Lifetime.SINGLETON
                and descriptor.kind is not DeclarationKind.ABSTRACT_BASE
            ):
                diagnostics.extend(self._captive_dependencies(graph, index))
            diagnostics.extend(self._inheritance_chain(graph, descriptor))

        logger.debug("Lifetime validation produced %d diagnostics", len(diagnostics))
        return tuple(diagnostics)

    @staticmethod
    def _hosted_service(descriptor: ServiceDescriptor) -> list[Diagnostic]:
        if descriptor.kind is not DeclarationKind.HOSTED_SERVICE:
            return []
        if descriptor.host_managed:
            return []
        if descriptor.declared_lifetime in (Lifetime.SCOPED, Lifetime.TRANSIENT):
            return [
                HOSTED_SERVICE_LIFETIME.create(
                    descriptor.type_id,
                    descriptor.type_id,
                    descriptor.declared_lifetime.value,
                )
            ]
        return []

    def _captive_dependencies(
        self, graph: DependencyGraph, source: int
    ) -> list[Diagnostic]:
        source_id = graph.type_id(source)
        diagnostics: list[Diagnostic] = []
        reported_scoped: set[int] = set()
        reported_transient: set[int] = set()

        for edge in graph.validation_successors(source):
            target = graph.node(edge.target)
            if target.effective_lifetime is Lifetime.SCOPED:
                if edge.target not in reported_scoped:
                    reported_scoped.add(edge.target)
                    diagnostics.append(
                        self._scoped(source_id, target.type_id, ())
                    )
            elif target.effective_lifetime is Lifetime.TRANSIENT:
                if edge.target not in reported_transient:
                    reported_transient.add(edge.target)
                    diagnostics.append(
                        SINGLETON_DEPENDS_ON_TRANSIENT.create(
                            source_id,
                            source_id,
                            target.type_id,
                            involved_types=(source_id, target.type_id),
                        )
                    )

        # Transitive reachability, breadth first so the reported path is short
        parents: dict[int, int] = {}
        queue: deque[int] = deque()
        for edge in graph.validation_successors(source):
            if edge.target != source and edge.target not in parents:
                parents[edge.target] = source
                queue.append(edge.target)

        while queue:
            node = queue.popleft()
            if (
                graph.node(node).effective_lifetime is Lifetime.SCOPED
                and node not in reported_scoped
            ):
                reported_scoped.add(node)
                path = _path_to(parents, source, node)
                diagnostics.append(
                    self._scoped(
                        source_id,
                        graph.type_id(node),
                        tuple(graph.type_id(step) for step in path),
                    )
                )
            for edge in graph.validation_successors(node):
                if edge.target != source and edge.target not in parents:
                    parents[edge.target] = node
                    queue.append(edge.target)

        return diagnostics

    @staticmethod
    def _scoped(source_id: str, target_id: str, path: tuple[str, ...]) -> Diagnostic:
        via = f" (via {' → '.join(path)})" if path else ""
        return SINGLETON_DEPENDS_ON_SCOPED.create(
            source_id,
            source_id,
            target_id,
            via,
            involved_types=(source_id, target_id),
        )

    def _inheritance_chain(
        self, graph: DependencyGraph, descriptor: ServiceDescriptor
    ) -> list[Diagnostic]:
        rank = descriptor.effective_lifetime.rank
        if rank is None:
            return []

        walk = graph.catalog.ancestors(
            descriptor.type_id, self._config.max_inheritance_depth
        )
        diagnostics: list[Diagnostic] = []
        for ancestor in walk.ancestors:
            ancestor_rank = ancestor.declared_lifetime.rank
            if ancestor_rank is None or rank >= ancestor_rank:
                continue
            diagnostics.append(
                INHERITANCE_LIFETIME.create(
                    descriptor.type_id,
                    descriptor.type_id,
                    descriptor.effective_lifetime.value,
                    ancestor.type_id,
                    ancestor.declared_lifetime.value,
                    involved_types=(descriptor.type_id, ancestor.type_id),
                )
            )
        return diagnostics


def _path_to(parents: dict[int, int], source: int, node: int) -> list[int]:
    path = [node]
    while path[-1] != source:
        path.append(parents[path[-1]])
    path.reverse()
    return path
