"""Organisms: agent records, the phase pipeline, and the world that hosts them."""
