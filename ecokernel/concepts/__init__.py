"""Concept discovery — the collaborator behind ``Ecosystem.search_concepts``."""
