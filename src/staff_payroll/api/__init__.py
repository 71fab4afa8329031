"""HTTP API for the staff payroll engine."""
