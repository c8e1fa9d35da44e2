"""Jurisdictional payroll tax engine."""

__version__ = "1.0.0"
