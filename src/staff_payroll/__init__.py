"""Staff payroll: pay components, salary runs and their approval workflow."""

__version__ = "0.1.0"
