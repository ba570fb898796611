"""Cycle detection over the dependency graph.

Cycles are advisory: they are reported as Warning diagnostics and never stop
later stages.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from ioc_planner.cancellation import CancellationToken, check_cancelled
from ioc_planner.diagnostics import CIRCULAR_DEPENDENCY, Diagnostic
from ioc_planner.graph import DependencyGraph, Edge

logger = logging.getLogger(__name__)

_UNVISITED = 0
_IN_PROGRESS = 1
_DONE = 2


@dataclass(frozen=True)
class Cycle:
    """One dependency cycle, listed from the node where it was entered."""

    members: tuple[str, ...]

    @property
    def path(self) -> tuple[str, ...]:
        """Members followed by the closing node."""
        return (*self.members, self.members[0])

    @property
    def is_self_loop(self) -> bool:
        return len(self.members) == 1

    def describe(self) -> str:
        """Render the cycle as ``A → B → A``."""
        return " → ".join(self.path)


@dataclass(frozen=True)
class CycleReport:
    """Cycles found in a graph and their diagnostics."""

    cycles: tuple[Cycle, ...]
    diagnostics: tuple[Diagnostic, ...]


class CycleDetector:
    """Finds dependency cycles with a three-colour depth-first traversal.

    Roots are visited in arena order and successors in edge order, so the
    same graph always yields the same cycles in the same order. Every back
    edge closes one cycle; cycles already reported through another entry
    point are recognised by their canonical rotation and skipped.
    """

    def detect(
        self,
        graph: DependencyGraph,
        cancellation: CancellationToken | None = None,
    ) -> CycleReport:
        """Find every distinct cycle reachable through validation edges.

        Args:
            graph: The dependency graph.
            cancellation: Optional token polled between root nodes.

        Returns:
            The cycles and one Warning diagnostic per cycle.

        Raises:
            AnalysisCancelledError: If cancellation is requested.

        """
        colour = [_UNVISITED] * graph.node_count
        seen: set[tuple[int, ...]] = set()
        found: list[tuple[int, ...]] = []

        for root in range(graph.node_count):
            if colour[root] != _UNVISITED:
                continue
            check_cancelled(cancellation)

            path: list[int] = [root]
            position = {root: 0}
            colour[root] = _IN_PROGRESS
            stack: list[tuple[int, Iterator[Edge]]] = [
                (root, iter(graph.validation_successors(root)))
            ]

            while stack:
                node, pending = stack[-1]
                edge = next(pending, None)
                if edge is None:
                    colour[node] = _DONE
                    stack.pop()
                    path.pop()
                    del position[node]
                    continue

                target = edge.target
                if colour[target] == _IN_PROGRESS:
                    members = tuple(path[position[target] :])
                    key = _canonical(members)
                    if key not in seen:
                        seen.add(key)
                        found.append(members)
                elif colour[target] == _UNVISITED:
                    colour[target] = _IN_PROGRESS
                    position[target] = len(path)
                    path.append(target)
                    stack.append((target, iter(graph.validation_successors(target))))

        cycles = tuple(
            Cycle(tuple(graph.type_id(index) for index in members))
            for members in found
        )
        diagnostics = tuple(
            CIRCULAR_DEPENDENCY.create(
                cycle.members[0], cycle.describe(), involved_types=cycle.members
            )
            for cycle in cycles
        )
        if cycles:
            logger.debug("Found %d dependency cycle(s)", len(cycles))
        return CycleReport(cycles, diagnostics)


def _canonical(members: tuple[int, ...]) -> tuple[int, ...]:
    start = members.index(min(members))
    return members[start:] + members[:start]
