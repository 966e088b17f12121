"""Workflow engines and supporting services."""
