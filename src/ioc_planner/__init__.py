"""IoC Planner - dependency analysis and emission planning for annotated services."""

from ioc_planner.cancellation import CancellationToken
from ioc_planner.catalog import (
    CatalogBuilder,
    ConditionSpec,
    ConfigurationBinding,
    DeclarationKind,
    DependencyRef,
    DependencySource,
    ServiceCatalog,
    ServiceDescriptor,
)
from ioc_planner.conditions import Predicate, PredicateCompiler
from ioc_planner.configuration import AnalysisConfiguration
from ioc_planner.constructors import ConstructorPlan, ConstructorSynthesizer
from ioc_planner.cycles import Cycle, CycleDetector
from ioc_planner.diagnostics import DIAGNOSTIC_DESCRIPTORS, Diagnostic, Severity
from ioc_planner.engine import AnalysisEngine, AnalysisResult
from ioc_planner.errors import (
    AnalysisCancelledError,
    ConfigurationError,
    PlannerError,
    SnapshotParseError,
    SnapshotValidationError,
)
from ioc_planner.graph import DependencyGraph, DependencyGraphBuilder, EdgeKind
from ioc_planner.lifetimes import LifetimeValidator
from ioc_planner.models import (
    DeclarationSnapshot,
    InstanceSharing,
    Lifetime,
    NamingConvention,
    RegistrationMode,
    TypeDeclaration,
)
from ioc_planner.parser import parse_snapshot, parse_snapshot_from_dict
from ioc_planner.registrations import (
    RegistrationEntry,
    RegistrationPlan,
    RegistrationShape,
    RegistrationSynthesizer,
)
from ioc_planner.schema import SnapshotSchemaGenerator

__all__ = [
    # Models
    "DeclarationSnapshot",
    "InstanceSharing",
    "Lifetime",
    "NamingConvention",
    "RegistrationMode",
    "TypeDeclaration",
    # Parser
    "parse_snapshot",
    "parse_snapshot_from_dict",
    # Catalog
    "CatalogBuilder",
    "ConditionSpec",
    "ConfigurationBinding",
    "DeclarationKind",
    "DependencyRef",
    "DependencySource",
    "ServiceCatalog",
    "ServiceDescriptor",
    # Graph
    "DependencyGraph",
    "DependencyGraphBuilder",
    "EdgeKind",
    # Validation
    "Cycle",
    "CycleDetector",
    "LifetimeValidator",
    # Synthesis
    "ConstructorPlan",
    "ConstructorSynthesizer",
    "Predicate",
    "PredicateCompiler",
    "RegistrationEntry",
    "RegistrationPlan",
    "RegistrationShape",
    "RegistrationSynthesizer",
    # Engine
    "AnalysisConfiguration",
    "AnalysisEngine",
    "AnalysisResult",
    "CancellationToken",
    # Diagnostics
    "DIAGNOSTIC_DESCRIPTORS",
    "Diagnostic",
    "Severity",
    # Schema
    "SnapshotSchemaGenerator",
    # Errors
    "AnalysisCancelledError",
    "ConfigurationError",
    "PlannerError",
    "SnapshotParseError",
    "SnapshotValidationError",
]
