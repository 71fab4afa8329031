"""Salary calculator: resolved components to a monetary breakdown."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from staff_payroll.calculators.types import (
    EARNING_TYPES,
    ComponentType,
    ResolvedComponent,
    RoundedBreakdown,
    SalaryBreakdown,
)


class SalaryCalculator:
    """Turns a resolved component set into gross/taxable/deductions/net.

    Aggregation rules:
    - BASIC, ALLOWANCE: add to gross; taxable ones also add to taxable pay
    - DEDUCTION: add to deductions, subtracted from gross
    - EMPLOYER_CONTRIBUTION: tracked separately, never affects gross or net

    Rounding:
    - All summation happens on unrounded Decimals
    - Persisted fields are rounded to cents with ROUND_HALF_UP
    - net is derived from the rounded gross and deductions, so
      net == gross - deductions holds exactly on persisted values
    """

    OUTPUT_PRECISION = Decimal("0.01")
    ROUNDING = ROUND_HALF_UP

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return Decimal(amount).quantize(
            SalaryCalculator.OUTPUT_PRECISION, rounding=SalaryCalculator.ROUNDING
        )

    def compute(self, components: Iterable[ResolvedComponent]) -> SalaryBreakdown:
        """Aggregate resolved components into an unrounded breakdown."""
        breakdown = SalaryBreakdown()

        for component in components:
            amount = Decimal(component.amount)

            if component.type in EARNING_TYPES:
                breakdown.gross_pay += amount
                if component.taxable:
                    breakdown.taxable_pay += amount
            elif component.type == ComponentType.DEDUCTION:
                breakdown.deductions += amount
            elif component.type == ComponentType.EMPLOYER_CONTRIBUTION:
                breakdown.employer_contrib += amount

            key = self._display_key(breakdown.entries, component)
            breakdown.entries[key] = {
                "amount": float(self.round_to_cents(amount)),
                "type": component.type,
                "autoAssigned": component.is_auto_assigned,
            }

        return breakdown

    def rounded(self, breakdown: SalaryBreakdown) -> RoundedBreakdown:
        """Cent-precision view of a breakdown for persistence."""
        gross = self.round_to_cents(breakdown.gross_pay)
        deductions = self.round_to_cents(breakdown.deductions)
        return RoundedBreakdown(
            gross_pay=gross,
            taxable_pay=self.round_to_cents(breakdown.taxable_pay),
            deductions=deductions,
            net_pay=gross - deductions,
            employer_contrib=self.round_to_cents(breakdown.employer_contrib),
            entries=dict(breakdown.entries),
        )

    @staticmethod
    def _display_key(entries: dict[str, Any], component: ResolvedComponent) -> str:
        """Display name for the breakdown, disambiguated on collision."""
        key = component.display_name
        if key in entries:
            key = f"{key} [{component.type}]"
        suffix = 2
        base = key
        while key in entries:
            key = f"{base} #{suffix}"
            suffix += 1
        return key
