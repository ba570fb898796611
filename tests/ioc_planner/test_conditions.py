"""Tests for conditional-registration predicate compilation."""

import pytest

from ioc_planner.conditions import (
    AllOf,
    AnyOf,
    ConfigEquals,
    ConfigNotEquals,
    EnvironmentIs,
    Not,
    PredicateCompiler,
)
from ioc_planner.models import ConditionOperator, Lifetime

from test_helpers import catalog_of, codes, condition, declare


def _compile(*conditions, lifetime: Lifetime = Lifetime.SCOPED):
    catalog = catalog_of(declare("Feature", lifetime, conditions=list(conditions)))
    return PredicateCompiler().compile(catalog.get("Feature"))


# =============================================================================
# Predicate Nodes
# =============================================================================


class TestPredicateEvaluation:
    """Tests for evaluating predicate trees."""

    def test_environment_comparison_is_case_insensitive(self) -> None:
        predicate = EnvironmentIs("Development")

        assert predicate.evaluate("development", {})
        assert not predicate.evaluate("Production", {})
        assert not predicate.evaluate(None, {})

    def test_config_equals_is_case_insensitive(self) -> None:
        predicate = ConfigEquals("Features:Beta", "true")

        assert predicate.evaluate(None, {"Features:Beta": "TRUE"})
        assert not predicate.evaluate(None, {"Features:Beta": "false"})
        assert not predicate.evaluate(None, {})

    def test_config_not_equals_is_ordinal(self) -> None:
        predicate = ConfigNotEquals("Cache:Mode", "off")

        assert not predicate.evaluate(None, {"Cache:Mode": "off"})
        assert predicate.evaluate(None, {"Cache:Mode": "OFF"})
        assert predicate.evaluate(None, {})

    def test_config_comparisons_carry_their_operator(self) -> None:
        assert ConfigEquals("A", "1").operator is ConditionOperator.EQUALS
        assert ConfigNotEquals("A", "1").operator is ConditionOperator.NOT_EQUALS

    def test_composites(self) -> None:
        predicate = AllOf(
            (
                AnyOf((EnvironmentIs("Dev"), EnvironmentIs("Test"))),
                Not(EnvironmentIs("Prod")),
            )
        )

        assert predicate.evaluate("test", {})
        assert not predicate.evaluate("Prod", {})
        assert not predicate.evaluate("Staging", {})

    def test_rendering_parenthesises_nested_groups(self) -> None:
        predicate = AnyOf(
            (
                AllOf((EnvironmentIs("Dev"), ConfigEquals("A", "1"))),
                Not(AnyOf((EnvironmentIs("X"), EnvironmentIs("Y")))),
            )
        )

        assert predicate.render() == (
            '(env("Dev") && config("A") == "1") || !(env("X") || env("Y"))'
        )


# =============================================================================
# Compilation
# =============================================================================


class TestPredicateCompiler:
    """Tests for compiling condition declarations."""

    def test_single_environment(self) -> None:
        predicate, diagnostics = _compile(condition(environment="Development"))

        assert predicate == EnvironmentIs("Development")
        assert diagnostics == []

    def test_environment_allow_list_is_ored(self) -> None:
        predicate, _ = _compile(condition(environment="Development, Staging"))

        assert predicate.render() == 'env("Development") || env("Staging")'

    def test_environment_deny_list_is_negated(self) -> None:
        predicate, _ = _compile(condition(not_environment="Production,Staging"))

        assert predicate.render() == '!env("Production") && !env("Staging")'
        assert predicate.evaluate("Development", {})
        assert predicate.evaluate(None, {})
        assert not predicate.evaluate("staging", {})

    def test_categories_are_anded(self) -> None:
        predicate, _ = _compile(
            condition(
                environment="Dev,Test", config_key="Cache:Enabled", equals="true"
            )
        )

        assert isinstance(predicate, AllOf)
        assert predicate.render() == (
            '(env("Dev") || env("Test")) && config("Cache:Enabled") == "true"'
        )

    def test_not_equals_values_are_anded(self) -> None:
        predicate, _ = _compile(condition(config_key="Mode", not_equals="a,b"))

        assert predicate == AllOf(
            (ConfigNotEquals("Mode", "a"), ConfigNotEquals("Mode", "b"))
        )

    def test_multiple_conditions_are_ored_with_warning(self) -> None:
        predicate, diagnostics = _compile(
            condition(environment="Development"),
            condition(config_key="Features:Beta", equals="true"),
        )

        assert predicate == AnyOf(
            (EnvironmentIs("Development"), ConfigEquals("Features:Beta", "true"))
        )
        assert codes(diagnostics) == ["IOC026"]
        assert diagnostics[0].message == (
            "'Feature' declares 2 conditions; they are combined with OR"
        )

    def test_conflicting_environment_deny_wins(self) -> None:
        predicate, diagnostics = _compile(
            condition(environment="Production", not_environment="production")
        )

        assert codes(diagnostics) == ["IOC020"]
        assert predicate == Not(EnvironmentIs("production"))
        assert not predicate.evaluate("Production", {})

    def test_equals_conflicting_with_not_equals(self) -> None:
        predicate, diagnostics = _compile(
            condition(config_key="Mode", equals="x", not_equals="x,y")
        )

        assert codes(diagnostics) == ["IOC020"]
        assert predicate.render() == 'config("Mode") != "x" && config("Mode") != "y"'


# =============================================================================
# Malformed Conditions
# =============================================================================


class TestMalformedConditions:
    """Malformed clauses are reported and left out of the predicate."""

    def test_empty_condition(self) -> None:
        predicate, diagnostics = _compile(condition())

        assert predicate is None
        assert codes(diagnostics) == ["IOC022"]

    def test_config_key_without_operator(self) -> None:
        predicate, diagnostics = _compile(condition(config_key="Features:Beta"))

        assert predicate is None
        assert codes(diagnostics) == ["IOC023"]
        assert "'Features:Beta'" in diagnostics[0].message

    @pytest.mark.parametrize(
        ("kwargs", "operators"),
        [
            ({"equals": "true"}, "Equals"),
            ({"not_equals": "off"}, "NotEquals"),
            ({"equals": "on", "not_equals": "off"}, "Equals and NotEquals"),
        ],
    )
    def test_operator_without_config_key(self, kwargs: dict, operators: str) -> None:
        predicate, diagnostics = _compile(condition(**kwargs))

        assert predicate is None
        assert codes(diagnostics) == ["IOC024"]
        assert diagnostics[0].message == (
            f"Condition on 'Feature' uses {operators} without a configuration key"
        )

    def test_valid_clauses_survive_malformed_ones(self) -> None:
        predicate, diagnostics = _compile(
            condition(environment="Development", equals="true")
        )

        assert predicate == EnvironmentIs("Development")
        assert codes(diagnostics) == ["IOC024"]

    def test_conditional_without_lifetime(self) -> None:
        predicate, diagnostics = _compile(
            condition(environment="Development"), lifetime=Lifetime.UNSPECIFIED
        )

        assert predicate == EnvironmentIs("Development")
        assert codes(diagnostics) == ["IOC021"]


class TestCompileCatalog:
    """Tests for compiling a whole catalog."""

    def test_only_conditional_descriptors_are_compiled(self) -> None:
        catalog = catalog_of(
            declare("Plain", Lifetime.SCOPED),
            declare(
                "Feature",
                Lifetime.SCOPED,
                conditions=[condition(environment="Development")],
            ),
            declare("Broken", Lifetime.SCOPED, conditions=[condition()]),
        )

        compilation = PredicateCompiler().compile_catalog(catalog)

        assert list(compilation.predicates) == ["Feature", "Broken"]
        assert compilation.predicate_for("Feature") == EnvironmentIs("Development")
        assert compilation.predicate_for("Broken") is None
        assert compilation.predicate_for("Plain") is None
        assert codes(compilation.diagnostics) == ["IOC022"]
