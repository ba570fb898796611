"""Analysis pipeline driver.

Runs every stage over one declaration snapshot:

    catalog, graph, cycles, lifetimes, constructors, conditions, registrations

Each pass is a pure function of the snapshot and the configuration, so
results are memoised by content hash and shared between callers.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ioc_planner.cancellation import CancellationToken
from ioc_planner.catalog import CatalogBuilder, ServiceCatalog
from ioc_planner.conditions import PredicateCompiler
from ioc_planner.configuration import AnalysisConfiguration
from ioc_planner.constructors import ConstructorPlan, ConstructorSynthesizer
from ioc_planner.cycles import Cycle, CycleDetector
from ioc_planner.diagnostics import Diagnostic, Severity
from ioc_planner.graph import DependencyGraph, DependencyGraphBuilder
from ioc_planner.lifetimes import LifetimeValidator
from ioc_planner.models import DeclarationSnapshot
from ioc_planner.parser import parse_snapshot, parse_snapshot_from_dict
from ioc_planner.registrations import RegistrationPlan, RegistrationSynthesizer

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 32


@dataclass(frozen=True)
class AnalysisResult:
    """Everything one analysis pass produced.

    Attributes:
        catalog: Accepted descriptors in declaration order.
        graph: Dependency graph over the catalog.
        cycles: Dependency cycles, in detection order.
        diagnostics: All diagnostics after configuration overrides, in stage
            order.
        constructor_plans: Constructor plans in catalog order.
        registration_plan: Ordered container registrations.
        content_hash: Hash of the snapshot and configuration analysed.

    """

    catalog: ServiceCatalog
    graph: DependencyGraph
    cycles: tuple[Cycle, ...]
    diagnostics: tuple[Diagnostic, ...]
    constructor_plans: tuple[ConstructorPlan, ...]
    registration_plan: RegistrationPlan
    content_hash: str

    @property
    def errors(self) -> tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.severity is Severity.ERROR)

    @property
    def warnings(self) -> tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.severity is Severity.WARNING)

    @property
    def has_errors(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self.diagnostics)

    def diagnostics_for(self, type_name: str) -> tuple[Diagnostic, ...]:
        """Diagnostics owned by ``type_name``."""
        return tuple(d for d in self.diagnostics if d.type_name == type_name)

    def constructor_plan_for(self, type_name: str) -> ConstructorPlan | None:
        for plan in self.constructor_plans:
            if plan.type_name == type_name:
                return plan
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "content_hash": self.content_hash,
            "types": list(self.catalog.type_ids),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "cycles": [cycle.describe() for cycle in self.cycles],
            "constructor_plans": [plan.to_dict() for plan in self.constructor_plans],
            "registrations": self.registration_plan.to_dict(),
        }


class AnalysisEngine:
    """Runs analysis passes with content-keyed memoisation.

    The engine holds no state besides the memo, which is guarded by a lock,
    so one instance can serve concurrent passes over different snapshots.

    Example:
        ```python
        engine = AnalysisEngine()
        result = engine.analyze_file(Path("declarations.yaml"))
        for diagnostic in result.errors:
            print(diagnostic.code, diagnostic.message)
        ```

    """

    def __init__(
        self,
        configuration: AnalysisConfiguration | None = None,
        cache_size: int = DEFAULT_CACHE_SIZE,
    ) -> None:
        """Initialise the engine.

        Args:
            configuration: Analysis configuration; defaults are used if None.
            cache_size: Maximum number of memoised results; 0 disables the memo.

        """
        self._config = configuration or AnalysisConfiguration()
        self._cache_size = max(cache_size, 0)
        self._cache: OrderedDict[str, AnalysisResult] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def configuration(self) -> AnalysisConfiguration:
        return self._config

    def analyze_file(
        self, path: Path, cancellation: CancellationToken | None = None
    ) -> AnalysisResult:
        """Parse a snapshot file and analyse it.

        Raises:
            SnapshotParseError: If the file cannot be read or parsed.
            SnapshotValidationError: If the content is not a valid snapshot.
            AnalysisCancelledError: If cancellation is requested.

        """
        return self.analyze(parse_snapshot(path), cancellation)

    def analyze_dict(
        self, data: dict[str, Any], cancellation: CancellationToken | None = None
    ) -> AnalysisResult:
        """Validate a snapshot dictionary and analyse it.

        Raises:
            SnapshotValidationError: If the data is not a valid snapshot.
            AnalysisCancelledError: If cancellation is requested.

        """
        return self.analyze(parse_snapshot_from_dict(data), cancellation)

    def analyze(
        self,
        snapshot: DeclarationSnapshot,
        cancellation: CancellationToken | None = None,
    ) -> AnalysisResult:
        """Run one analysis pass, reusing a memoised result when possible.

        Args:
            snapshot: Declarations to analyse.
            cancellation: Optional token observed between descriptors.

        Returns:
            The analysis result.

        Raises:
            AnalysisCancelledError: If cancellation is requested. Nothing is
                memoised for an abandoned pass.

        """
        key = self.content_hash(snapshot)
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                self._cache.move_to_end(key)
                logger.debug("Reusing memoised analysis %s", key[:12])
                return cached

        result = self._run(snapshot, key, cancellation)

        if self._cache_size:
            with self._lock:
                self._cache[key] = result
                self._cache.move_to_end(key)
                while len(self._cache) > self._cache_size:
                    self._cache.popitem(last=False)
        return result

    def content_hash(self, snapshot: DeclarationSnapshot) -> str:
        """SHA-256 of the snapshot content and the configuration."""
        config = json.dumps(self._config.model_dump(mode="json"), sort_keys=True)
        combined = f"{snapshot.model_dump_json()}|{config}"
        return hashlib.sha256(combined.encode()).hexdigest()

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def _run(
        self,
        snapshot: DeclarationSnapshot,
        content_hash: str,
        cancellation: CancellationToken | None,
    ) -> AnalysisResult:
        config = self._config
        diagnostics: list[Diagnostic] = []

        catalog_result = CatalogBuilder(config).build(snapshot, cancellation)
        catalog = catalog_result.catalog
        diagnostics.extend(catalog_result.diagnostics)

        graph_result = DependencyGraphBuilder(config).build(catalog, cancellation)
        graph = graph_result.graph
        diagnostics.extend(graph_result.diagnostics)

        cycle_report = CycleDetector().detect(graph, cancellation)
        diagnostics.extend(cycle_report.diagnostics)

        if config.lifetime_validation_enabled:
            diagnostics.extend(LifetimeValidator(config).validate(graph, cancellation))
        else:
            logger.debug("Lifetime validation disabled")

        synthesis = ConstructorSynthesizer(config).synthesize(catalog, cancellation)
        diagnostics.extend(synthesis.diagnostics)

        predicates = PredicateCompiler().compile_catalog(catalog, cancellation)
        diagnostics.extend(predicates.diagnostics)

        plan = RegistrationSynthesizer(config).synthesize(
            catalog, predicates, cancellation
        )
        diagnostics.extend(plan.diagnostics)

        result = AnalysisResult(
            catalog=catalog,
            graph=graph,
            cycles=cycle_report.cycles,
            diagnostics=config.apply(diagnostics),
            constructor_plans=synthesis.plans,
            registration_plan=plan,
            content_hash=content_hash,
        )
        logger.info(
            "Analysed %d types: %d errors, %d warnings, %d registrations",
            len(catalog),
            len(result.errors),
            len(result.warnings),
            len(plan.entries),
        )
        return result
