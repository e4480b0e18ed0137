# errors.py


class SimulationError(Exception):
    """Base class for everything a simulation run can fail with."""


class GeometryError(SimulationError, ValueError):
    """Cache geometry that cannot be built (E < 1, S + b wider than an address)."""


class TraceFormatError(SimulationError, ValueError):
    def __init__(self, message, lineno=None, line=None):
        self.lineno = lineno
        self.line = line
        if lineno is not None:
            message = f"line {lineno}: {message}"
            if line is not None:
                message = f"{message}: {line.rstrip()!r}"
        super().__init__(message)


class InternalInvariantError(SimulationError, RuntimeError):
    """A defect in the model itself. Never retried."""
