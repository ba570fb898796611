"""Tests for container registration planning."""

from ioc_planner.conditions import PredicateCompiler
from ioc_planner.models import InstanceSharing, Lifetime, RegistrationMode
from ioc_planner.registrations import (
    RegistrationPlan,
    RegistrationShape,
    RegistrationSynthesizer,
    registration_summary,
)

from test_helpers import catalog_of, codes, condition, declare, registration

DIRECT = RegistrationShape.DIRECT
FACTORY = RegistrationShape.FACTORY


def _plan(*declarations) -> RegistrationPlan:
    catalog = catalog_of(*declarations)
    predicates = PredicateCompiler().compile_catalog(catalog)
    return RegistrationSynthesizer().synthesize(catalog, predicates)


def _shapes(plan: RegistrationPlan) -> list[tuple[str | None, RegistrationShape]]:
    return [(e.service_type, e.shape) for e in plan.entries]


# =============================================================================
# Registration Shapes
# =============================================================================


class TestRegistrationShapes:
    """Tests for the entries produced per descriptor."""

    def test_type_without_interfaces(self) -> None:
        plan = _plan(declare("Clock", Lifetime.SINGLETON))

        assert _shapes(plan) == [(None, DIRECT)]
        assert plan.entries[0].implementation_type == "Clock"
        assert plan.entries[0].lifetime is Lifetime.SINGLETON

    def test_scoped_type_registers_each_interface_separately(self) -> None:
        plan = _plan(
            declare("Repository", Lifetime.SCOPED, interfaces=["IRead", "IWrite"])
        )

        assert _shapes(plan) == [(None, DIRECT), ("IRead", DIRECT), ("IWrite", DIRECT)]

    def test_singleton_shares_one_instance(self) -> None:
        plan = _plan(declare("Cache", Lifetime.SINGLETON, interfaces=["ICache"]))

        assert _shapes(plan) == [(None, DIRECT), ("ICache", FACTORY)]

    def test_explicit_sharing_overrides_default(self) -> None:
        plan = _plan(
            declare(
                "Cache",
                Lifetime.SINGLETON,
                interfaces=["ICache"],
                registration=registration(instance_sharing=InstanceSharing.SEPARATE),
            ),
            declare(
                "Repository",
                Lifetime.SCOPED,
                interfaces=["IRepository"],
                registration=registration(instance_sharing=InstanceSharing.SHARED),
            ),
        )

        assert _shapes(plan) == [
            (None, DIRECT),
            ("ICache", DIRECT),
            (None, DIRECT),
            ("IRepository", FACTORY),
        ]

    def test_direct_only_mode(self) -> None:
        plan = _plan(
            declare(
                "Repository",
                Lifetime.SCOPED,
                interfaces=["IRepository"],
                registration=registration(mode=RegistrationMode.DIRECT_ONLY),
            )
        )

        assert _shapes(plan) == [(None, DIRECT)]

    def test_exclusionary_mode_defaults_to_shared(self) -> None:
        plan = _plan(
            declare(
                "Repository",
                Lifetime.SCOPED,
                interfaces=["IRepository"],
                registration=registration(mode=RegistrationMode.EXCLUSIONARY),
            )
        )

        assert _shapes(plan) == [(None, DIRECT), ("IRepository", FACTORY)]

    def test_exclusionary_mode_with_separate_sharing(self) -> None:
        plan = _plan(
            declare(
                "Repository",
                Lifetime.SCOPED,
                interfaces=["IRead", "IWrite"],
                registration=registration(
                    mode=RegistrationMode.EXCLUSIONARY,
                    instance_sharing=InstanceSharing.SEPARATE,
                ),
            )
        )

        assert _shapes(plan) == [("IRead", DIRECT), ("IWrite", DIRECT)]

    def test_inherited_interfaces_are_registered(self) -> None:
        plan = _plan(
            declare("RepositoryBase", interfaces=["IRepository"], is_abstract=True),
            declare(
                "SqlRepository",
                Lifetime.SCOPED,
                interfaces=["ISqlRepository"],
                base_type="RepositoryBase",
            ),
        )

        assert _shapes(plan) == [
            (None, DIRECT),
            ("ISqlRepository", DIRECT),
            ("IRepository", DIRECT),
        ]

    def test_hosted_service(self) -> None:
        plan = _plan(declare("Worker", is_hosted_service=True, interfaces=["IWorker"]))

        assert _shapes(plan) == [(None, RegistrationShape.HOSTED)]
        assert plan.entries[0].lifetime is Lifetime.SINGLETON

    def test_abstract_and_unregistered_types_are_skipped(self) -> None:
        plan = _plan(
            declare("Base", Lifetime.SCOPED, is_abstract=True),
            declare("Plain"),
        )

        assert plan.entries == ()


# =============================================================================
# Registration Directives
# =============================================================================


class TestRegistrationDirectives:
    """Tests for register-as and skip directives."""

    def test_register_as_replaces_interface_set(self) -> None:
        plan = _plan(
            declare(
                "Repository",
                Lifetime.SCOPED,
                interfaces=["IRead", "IWrite"],
                registration=registration(register_as=["IWrite"]),
            )
        )

        assert _shapes(plan) == [("IWrite", DIRECT)]
        assert plan.diagnostics == ()

    def test_register_as_unimplemented_interface(self) -> None:
        plan = _plan(
            declare(
                "Repository",
                Lifetime.SCOPED,
                interfaces=["IRead"],
                registration=registration(register_as=["IRead", "IAudit"]),
            )
        )

        assert codes(plan.diagnostics) == ["IOC029"]
        assert plan.diagnostics[0].involved_types == ("Repository", "IAudit")
        assert _shapes(plan) == [("IRead", DIRECT)]

    def test_register_as_duplicate(self) -> None:
        plan = _plan(
            declare(
                "Repository",
                Lifetime.SCOPED,
                interfaces=["IRead"],
                registration=registration(register_as=["IRead", "IRead"]),
            )
        )

        assert codes(plan.diagnostics) == ["IOC030"]
        assert _shapes(plan) == [("IRead", DIRECT)]

    def test_skip_removes_interfaces(self) -> None:
        plan = _plan(
            declare(
                "Repository",
                Lifetime.SCOPED,
                interfaces=["IRead", "IDisposable"],
                registration=registration(skip=["IDisposable"]),
            )
        )

        assert _shapes(plan) == [(None, DIRECT), ("IRead", DIRECT)]

    def test_skip_of_unimplemented_interface(self) -> None:
        plan = _plan(
            declare(
                "Repository",
                Lifetime.SCOPED,
                interfaces=["IRead"],
                registration=registration(skip=["IWrite"]),
            )
        )

        assert codes(plan.diagnostics) == ["IOC009"]
        assert plan.diagnostics[0].message == (
            "'Repository' skips 'IWrite', which it does not implement"
        )

    def test_register_as_all_without_lifetime(self) -> None:
        plan = _plan(
            declare(
                "Repository",
                interfaces=["IRead"],
                registration=registration(register_as_all=True),
            )
        )

        assert codes(plan.diagnostics) == ["IOC004"]
        assert _shapes(plan) == [(None, DIRECT), ("IRead", DIRECT)]
        assert plan.entries[0].lifetime is Lifetime.SCOPED


# =============================================================================
# Conditional Chains
# =============================================================================


class TestConditionalChains:
    """Tests for guarded registrations."""

    def _processors(self):
        return (
            declare(
                "StripeProcessor",
                Lifetime.SCOPED,
                interfaces=["IPaymentProcessor"],
                conditions=[condition(config_key="Features:Stripe", equals="true")],
            ),
            declare(
                "PayPalProcessor",
                Lifetime.SCOPED,
                interfaces=["IPaymentProcessor"],
                conditions=[condition(config_key="Features:Stripe", equals="false")],
            ),
        )

    def test_competing_implementations_form_one_chain(self) -> None:
        plan = _plan(*self._processors())

        chain = next(c for c in plan.chains if c.key == "IPaymentProcessor")
        assert [e.implementation_type for e in chain.branches] == [
            "StripeProcessor",
            "PayPalProcessor",
        ]
        assert [e.chain.index for e in chain.branches] == [0, 1]
        assert [e.chain.is_else for e in chain.branches] == [False, True]
        assert {e.chain.length for e in chain.branches} == {2}
        assert chain.branches[0].guard.render() == (
            'config("Features:Stripe") == "true"'
        )

    def test_concrete_entries_form_their_own_chains(self) -> None:
        plan = _plan(*self._processors())

        assert [c.key for c in plan.chains] == [
            "StripeProcessor",
            "IPaymentProcessor",
            "PayPalProcessor",
        ]
        assert len(plan.chains[0].branches) == 1

    def test_unconditional_entries_come_first(self) -> None:
        plan = _plan(
            *self._processors(),
            declare("Clock", Lifetime.SINGLETON),
        )

        assert plan.entries[0].implementation_type == "Clock"
        assert plan.unconditional == (plan.entries[0],)
        assert all(e.guard is not None for e in plan.entries[1:])

    def test_conditional_without_valid_predicate_is_not_registered(self) -> None:
        plan = _plan(declare("Feature", Lifetime.SCOPED, conditions=[condition()]))

        assert plan.entries == ()


# =============================================================================
# Plan Output
# =============================================================================


class TestPlanOutput:
    """Tests for plan serialisation and summaries."""

    def test_to_dict(self) -> None:
        plan = _plan(
            declare(
                "DevMailer",
                Lifetime.SINGLETON,
                conditions=[condition(environment="Development")],
            )
        )

        assert plan.to_dict() == [
            {
                "service_type": None,
                "implementation_type": "DevMailer",
                "lifetime": "Singleton",
                "shape": "direct",
                "guard": 'env("Development")',
                "chain": {"key": "DevMailer", "index": 0},
            }
        ]

    def test_entries_for_and_summary(self) -> None:
        plan = _plan(
            declare("Cache", Lifetime.SINGLETON, interfaces=["ICache"]),
            declare("Worker", is_hosted_service=True),
        )

        assert len(plan.entries_for("Cache")) == 2
        assert registration_summary(plan) == {"direct": 1, "factory": 1, "hosted": 1}
