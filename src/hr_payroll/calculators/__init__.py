"""Payroll calculation engine."""

from hr_payroll.calculators.component_resolver import ComponentResolver
from hr_payroll.calculators.engine import EntryGenerationEngine
from hr_payroll.calculators.entry_builder import EntryBuilder
from hr_payroll.calculators.tax_calculator import TaxCalculator
from hr_payroll.calculators.tax_tables import TaxTableProvider, seed_tax_tables

__all__ = [
    "ComponentResolver",
    "EntryGenerationEngine",
    "EntryBuilder",
    "TaxCalculator",
    "TaxTableProvider",
    "seed_tax_tables",
]
