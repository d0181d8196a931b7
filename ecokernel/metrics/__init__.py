"""Entropy-derivative activity metric."""
