"""The orchestrator tying every subsystem into one tick."""
