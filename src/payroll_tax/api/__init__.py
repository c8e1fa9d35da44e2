"""HTTP API for payroll tax calculations."""
