"""Lifecycle events published by the ecosystem."""
