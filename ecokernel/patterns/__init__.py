"""Bounded cache of reusable lighting patterns."""
