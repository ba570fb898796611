"""Dependency graph over catalog descriptors.

Nodes are the catalog's descriptors, addressed by their integer position in
the catalog (the arena). Edges are stored as per-node adjacency lists of
``Edge`` records that refer to nodes by index only, so cyclic dependency
relationships never become cyclic object references.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from ioc_planner.cancellation import CancellationToken, check_cancelled
from ioc_planner.catalog import (
    DependencyRef,
    DependencySource,
    ServiceCatalog,
    ServiceDescriptor,
)
from ioc_planner.configuration import AnalysisConfiguration
from ioc_planner.diagnostics import (
    INHERITANCE_DEPTH_EXCEEDED,
    NO_IMPLEMENTATION,
    Diagnostic,
)

logger = logging.getLogger(__name__)


class EdgeKind(StrEnum):
    """How an edge entered the graph."""

    DIRECT = "direct"
    """Declared on the source type itself."""

    INHERITED = "inherited"
    """Declared on an ancestor and passed through the generated constructor."""


@dataclass(frozen=True)
class Edge:
    """A dependency edge between two arena indices.

    Attributes:
        source: Index of the dependent descriptor.
        target: Index of the descriptor satisfying the dependency.
        dependency: The declaration that produced the edge.
        kind: Direct or inherited.
        declared_by: Type that declared the dependency; differs from the
            source for inherited edges.

    """

    source: int
    target: int
    dependency: DependencyRef
    kind: EdgeKind
    declared_by: str

    @property
    def is_self_loop(self) -> bool:
        return self.source == self.target


class DependencyGraph:
    """Immutable directed graph over the descriptors of one catalog."""

    def __init__(self, catalog: ServiceCatalog, edges: Sequence[Edge]) -> None:
        """Build adjacency lists from edges.

        Args:
            catalog: Catalog whose descriptors form the node arena.
            edges: Edges in insertion order. Indices must be valid arena
                positions.

        Raises:
            ValueError: If an edge references an index outside the arena.

        """
        self._catalog = catalog
        size = len(catalog)
        outgoing: list[list[Edge]] = [[] for _ in range(size)]
        incoming: list[list[Edge]] = [[] for _ in range(size)]
        for edge in edges:
            if not (0 <= edge.source < size and 0 <= edge.target < size):
                raise ValueError(f"Edge references unknown node: {edge}")
            outgoing[edge.source].append(edge)
            incoming[edge.target].append(edge)

        self._edges = tuple(edges)
        self._outgoing = tuple(tuple(adjacent) for adjacent in outgoing)
        self._incoming = tuple(tuple(adjacent) for adjacent in incoming)

    @property
    def catalog(self) -> ServiceCatalog:
        return self._catalog

    @property
    def node_count(self) -> int:
        return len(self._catalog)

    @property
    def edges(self) -> tuple[Edge, ...]:
        return self._edges

    def node(self, index: int) -> ServiceDescriptor:
        """Return the descriptor stored at ``index``."""
        return self._catalog[index]

    def type_id(self, index: int) -> str:
        """Return the type identifier of the node at ``index``."""
        return self._catalog[index].type_id

    def index_of(self, type_id: str) -> int:
        """Return the arena index of ``type_id``.

        Raises:
            KeyError: If the type is not in the graph.

        """
        return self._catalog.index_of(type_id)

    def successors(self, index: int) -> tuple[Edge, ...]:
        """Outgoing edges of a node, in declaration order."""
        return self._outgoing[index]

    def predecessors(self, index: int) -> tuple[Edge, ...]:
        """Incoming edges of a node."""
        return self._incoming[index]

    def validation_successors(self, index: int) -> tuple[Edge, ...]:
        """Outgoing edges that take part in cycle and lifetime validation.

        External descriptors opt out of graph validation, so their outgoing
        edges are not followed.
        """
        if self._catalog[index].is_external:
            return ()
        return self._outgoing[index]

    def get_dependencies(self, type_id: str) -> tuple[str, ...]:
        """Get the distinct types ``type_id`` depends on.

        Args:
            type_id: The dependent type.

        Returns:
            Target type identifiers in edge order.

        """
        edges = self.successors(self.index_of(type_id))
        targets = (self.type_id(e.target) for e in edges)
        return tuple(dict.fromkeys(targets))

    def get_dependents(self, type_id: str) -> tuple[str, ...]:
        """Get the distinct types that depend on ``type_id``.

        Args:
            type_id: The dependency.

        Returns:
            Source type identifiers in arena order.

        """
        sources = sorted({e.source for e in self.predecessors(self.index_of(type_id))})
        return tuple(self.type_id(source) for source in sources)

    def has_edge(self, source: str, target: str) -> bool:
        """Whether there is a direct or inherited edge from source to target."""
        target_index = self.index_of(target)
        edges = self.successors(self.index_of(source))
        return any(e.target == target_index for e in edges)


@dataclass(frozen=True)
class GraphBuildResult:
    """Graph plus the diagnostics raised while building it."""

    graph: DependencyGraph
    diagnostics: tuple[Diagnostic, ...]


class DependencyGraphBuilder:
    """Builds the dependency graph for a catalog.

    Each descriptor gets one ``direct`` edge per resolvable, non-collection
    dependency, followed by ``inherited`` edges for the dependencies of its
    ancestors that it does not already depend on.
    """

    def __init__(self, configuration: AnalysisConfiguration | None = None) -> None:
        self._config = configuration or AnalysisConfiguration()

    def build(
        self,
        catalog: ServiceCatalog,
        cancellation: CancellationToken | None = None,
    ) -> GraphBuildResult:
        """Build the graph and report unresolvable dependencies.

        Args:
            catalog: The catalog snapshot.
            cancellation: Optional token polled between descriptors.

        Returns:
            The graph and its diagnostics.

        Raises:
            AnalysisCancelledError: If cancellation is requested.

        """
        edges: list[Edge] = []
        diagnostics: list[Diagnostic] = []

        for index, descriptor in enumerate(catalog):
            check_cancelled(cancellation)
            targets: set[int] = set()

            for ref in descriptor.graph_dependencies:
                target = _target_index(catalog, ref)
                targets.add(target)
                edges.append(
                    Edge(index, target, ref, EdgeKind.DIRECT, descriptor.type_id)
                )

            walk = catalog.ancestors(
                descriptor.type_id, self._config.max_inheritance_depth
            )
            if walk.truncated:
                diagnostics.append(
                    INHERITANCE_DEPTH_EXCEEDED.create(
                        descriptor.type_id,
                        descriptor.type_id,
                        self._config.max_inheritance_depth,
                    )
                )
            for ancestor in walk.ancestors:
                for ref in ancestor.graph_dependencies:
                    target = _target_index(catalog, ref)
                    if target in targets:
                        continue
                    targets.add(target)
                    edges.append(
                        Edge(index, target, ref, EdgeKind.INHERITED, ancestor.type_id)
                    )

            diagnostics.extend(self._unresolved(descriptor))

        graph = DependencyGraph(catalog, edges)
        logger.debug(
            "Dependency graph built with %d nodes and %d edges",
            graph.node_count,
            len(edges),
        )
        return GraphBuildResult(graph, tuple(diagnostics))

    def _unresolved(self, descriptor: ServiceDescriptor) -> list[Diagnostic]:
        if descriptor.is_external:
            return []
        diagnostics: list[Diagnostic] = []
        for ref in descriptor.dependencies:
            if (
                ref.source is DependencySource.CONFIGURATION
                or ref.is_resolved
                or ref.is_collection
                or ref.external
                or ref.optional
                or ref.target_type == self._config.configuration_source_type
                or self._config.is_framework_type(ref.target_type)
            ):
                continue
            diagnostics.append(
                NO_IMPLEMENTATION.create(
                    descriptor.type_id,
                    descriptor.type_id,
                    ref.declared_type,
                    involved_types=(descriptor.type_id, ref.target_type),
                )
            )
        return diagnostics


def _target_index(catalog: ServiceCatalog, ref: DependencyRef) -> int:
    if ref.target_id is None:
        raise ValueError(f"Dependency on {ref.target_type} is unresolved")
    return catalog.index_of(ref.target_id)
