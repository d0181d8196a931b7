"""Custom exception hierarchy for ecokernel."""


class EcoKernelError(Exception):
    """Base for all ecokernel errors."""


class AgentNotFoundError(EcoKernelError):
    """No agent with the given handle lives in the world."""


class ConceptSourceError(EcoKernelError):
    """A concept source could not be reached or parsed."""


class GuardError(EcoKernelError):
    """Base for errors raised around a guarded operation."""


class CircuitOpenError(GuardError):
    """The circuit breaker is open; the operation was never invoked."""

    def __init__(self, message: str = "Circuit breaker is open"):
        super().__init__(message)


class ExecutionFailedError(GuardError):
    """Opaque failure reported by a guarded operation."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Execution failed: {reason}")


class GuardTimeoutError(GuardError):
    """Operation timed out. Reserved for callers enforcing their own deadlines."""

    def __init__(self, message: str = "Operation timed out"):
        super().__init__(message)
