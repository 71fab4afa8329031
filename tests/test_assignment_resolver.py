"""Tests for pay component resolution and its precedence strategies."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from staff_payroll.calculators import (
    AssignmentResolver,
    DecisionOutcome,
    DepartmentAutoAssignStrategy,
    ManualAssignmentStrategy,
    PeriodWindow,
    StaffProfile,
    SystemAutoAssignStrategy,
    derive_department,
    resolve_components,
)
from staff_payroll.errors import NotFoundError
from staff_payroll.models import PayComponent, StaffPayAssignment

TENANT = uuid4()


def profile(role: str = "TEACHER", profile_department: str | None = None) -> StaffProfile:
    return StaffProfile(
        staff_id=uuid4(),
        tenant_id=TENANT,
        role=role,
        is_active=True,
        display_name="Jane Doe",
        profile_department=profile_department,
    )


def catalog_entry(
    name: str,
    type: str = "ALLOWANCE",
    default_amount: str | None = "100",
    department: str | None = None,
    auto_assign: bool = True,
) -> PayComponent:
    return PayComponent(
        pay_component_id=uuid4(),
        tenant_id=TENANT,
        code=name.upper().replace(" ", "_"),
        name=name,
        type=type,
        taxable=type != "DEDUCTION",
        compute_method="FIXED",
        default_amount=Decimal(default_amount) if default_amount is not None else None,
        department=department,
        auto_assign=auto_assign,
    )


def manual(staff: StaffProfile, component: PayComponent, amount: str) -> StaffPayAssignment:
    return StaffPayAssignment(
        staff_pay_assignment_id=uuid4(),
        tenant_id=TENANT,
        staff_id=staff.staff_id,
        pay_component_id=component.pay_component_id,
        amount=Decimal(amount),
        is_active=True,
        component=component,
    )


class TestDeriveDepartment:
    """Test department derivation from role and profile."""

    @pytest.mark.parametrize(
        "role,profile_department,expected",
        [
            ("TEACHER", None, "Teaching"),
            ("TEACHER", "Science", "Teaching"),
            ("FINANCE", None, "Finance"),
            ("FINANCE", "Accounts", "Accounts"),
            ("ADMIN", None, "Administration"),
            ("LIBRARIAN", None, "Library"),
            ("STUDENT", None, "General"),
        ],
    )
    def test_derive_department(self, role, profile_department, expected):
        assert derive_department(role, profile_department) == expected


class TestResolutionStrategies:
    """Each precedence tier in isolation, then composed."""

    def test_manual_strategy_includes_every_assignment(self):
        staff = profile()
        basic = catalog_entry("Basic Salary", type="BASIC", auto_assign=False)
        resolution = resolve_components(
            staff, [manual(staff, basic, "1000")], [], [ManualAssignmentStrategy()]
        )

        assert [c.amount for c in resolution.components] == [Decimal("1000")]
        assert resolution.components[0].is_auto_assigned is False
        assert resolution.decisions[0].strategy == "manual"
        assert resolution.decisions[0].included is True

    def test_department_strategy_ignores_other_departments(self):
        staff = profile(role="LIBRARIAN")
        teaching = catalog_entry("Chalk Allowance", department="Teaching")
        library = catalog_entry("Book Allowance", department="Library")

        resolution = resolve_components(
            staff, [], [teaching, library], [DepartmentAutoAssignStrategy()]
        )

        assert [c.name for c in resolution.components] == ["Book Allowance"]
        (decision,) = resolution.decisions_for(teaching.pay_component_id)
        assert decision.outcome == DecisionOutcome.OTHER_DEPARTMENT

    def test_system_strategy_skips_department_components(self):
        staff = profile()
        scoped = catalog_entry("Chalk Allowance", department="Teaching")
        wide = catalog_entry("Medical")

        resolution = resolve_components(staff, [], [scoped, wide], [SystemAutoAssignStrategy()])

        assert [c.name for c in resolution.components] == ["Medical"]
        assert resolution.decisions_for(scoped.pay_component_id) == []

    def test_manual_wins_over_same_named_auto_component(self):
        """A manual BASIC is never double counted with an auto BASIC of the same name."""
        staff = profile()
        manual_basic = catalog_entry("Basic Salary", type="BASIC", auto_assign=False)
        auto_basic = catalog_entry("Basic Salary", type="BASIC", default_amount="500")

        resolution = resolve_components(staff, [manual(staff, manual_basic, "1000")], [auto_basic])

        assert [(c.name, c.amount) for c in resolution.components] == [
            ("Basic Salary", Decimal("1000"))
        ]
        (decision,) = resolution.decisions_for(auto_basic.pay_component_id)
        assert decision.outcome == DecisionOutcome.COVERED
        assert decision.strategy == "system_auto"

    def test_manual_assignment_of_auto_component_covers_it_by_id(self):
        staff = profile()
        medical = catalog_entry("Medical", default_amount="50")

        resolution = resolve_components(staff, [manual(staff, medical, "75")], [medical])

        assert [(c.amount, c.is_auto_assigned) for c in resolution.components] == [
            (Decimal("75"), False)
        ]

    def test_department_component_overrides_system_wide(self):
        """Staff in the department get the scoped amount; everyone else the system-wide one."""
        scoped = catalog_entry("House Allowance", default_amount="300", department="Teaching")
        wide = catalog_entry("House Allowance", default_amount="200")
        auto = [scoped, wide]

        teacher = resolve_components(profile(role="TEACHER"), [], auto)
        admin = resolve_components(profile(role="ADMIN"), [], auto)

        assert [(c.component_id, c.amount) for c in teacher.components] == [
            (scoped.pay_component_id, Decimal("300"))
        ]
        assert [(c.component_id, c.amount) for c in admin.components] == [
            (wide.pay_component_id, Decimal("200"))
        ]

    def test_same_name_different_type_is_not_covered(self):
        staff = profile()
        allowance = catalog_entry("Welfare", type="ALLOWANCE")
        deduction = catalog_entry("Welfare", type="DEDUCTION", default_amount="20")

        resolution = resolve_components(staff, [], [allowance, deduction])

        assert len(resolution.components) == 2

    def test_auto_component_without_default_amount_resolves_to_zero(self):
        resolution = resolve_components(profile(), [], [catalog_entry("Bonus", default_amount=None)])
        assert resolution.components[0].amount == Decimal("0")

    def test_precedence_order_of_components(self):
        staff = profile()
        basic = catalog_entry("Basic Salary", type="BASIC", auto_assign=False)
        scoped = catalog_entry("Chalk Allowance", department="Teaching")
        wide = catalog_entry("Medical")

        resolution = resolve_components(staff, [manual(staff, basic, "900")], [scoped, wide])

        assert [d.strategy for d in resolution.decisions if d.included] == [
            "manual",
            "department_auto",
            "system_auto",
        ]


class TestAssignmentResolver:
    """Resolver against the database."""

    async def test_resolve_loads_manual_and_auto(
        self, session, tenant_id, make_staff, make_component, assign
    ):
        staff = await make_staff(first_name="Alice", role="TEACHER")
        basic = await make_component("Basic Salary", type="BASIC")
        await make_component("House Allowance", default_amount="300", auto_assign=True, department="Teaching")
        await make_component("House Allowance", default_amount="200", auto_assign=True)
        await assign(staff, basic, "1000")

        resolution = await AssignmentResolver(session).resolve(staff.staff_id, tenant_id)

        assert resolution.department == "Teaching"
        assert sorted((c.name, c.amount) for c in resolution.components) == [
            ("Basic Salary", Decimal("1000")),
            ("House Allowance", Decimal("300")),
        ]

    async def test_inactive_assignments_are_ignored(
        self, session, tenant_id, make_staff, make_component, assign
    ):
        staff = await make_staff()
        basic = await make_component("Basic Salary", type="BASIC")
        await assign(staff, basic, "1000", is_active=False)

        resolution = await AssignmentResolver(session).resolve(staff.staff_id, tenant_id)

        assert resolution.components == []

    async def test_other_tenant_components_are_invisible(
        self, session, tenant_id, other_tenant_id, make_staff, make_component
    ):
        staff = await make_staff()
        await make_component("Medical", auto_assign=True, default_amount="50", tenant=other_tenant_id)

        resolution = await AssignmentResolver(session).resolve(staff.staff_id, tenant_id)

        assert resolution.components == []

    async def test_unknown_staff_raises(self, session, tenant_id):
        with pytest.raises(NotFoundError):
            await AssignmentResolver(session).resolve(uuid4(), tenant_id)

    async def test_effective_dates_limit_manual_assignments(
        self, session, tenant_id, make_staff, make_component, assign
    ):
        staff = await make_staff()
        old = await make_component("Old Basic", type="BASIC")
        current = await make_component("Basic Salary", type="BASIC")
        future = await make_component("Future Allowance")
        await assign(staff, old, "700", effective_to=date(2025, 2, 28))
        await assign(staff, current, "1000", effective_from=date(2025, 3, 15))
        await assign(staff, future, "50", effective_from=date(2025, 4, 1))

        resolution = await AssignmentResolver(session).resolve(
            staff.staff_id, tenant_id, PeriodWindow.for_period("2025-03")
        )

        assert [c.name for c in resolution.components] == ["Basic Salary"]

    async def test_resolve_many(self, session, tenant_id, make_staff, make_component, assign):
        from staff_payroll.services.staff_directory import SqlStaffDirectory

        alice = await make_staff(first_name="Alice")
        bob = await make_staff(first_name="Bob", role="LIBRARIAN")
        basic = await make_component("Basic Salary", type="BASIC")
        await assign(alice, basic, "1000")
        await assign(bob, basic, "800")

        profiles = await SqlStaffDirectory(session).list_active_staff(tenant_id)
        resolutions = await AssignmentResolver(session).resolve_many(profiles, tenant_id)

        assert resolutions[alice.staff_id].components[0].amount == Decimal("1000")
        assert resolutions[bob.staff_id].department == "Library"
