"""Fault isolation for external-facing calls."""
