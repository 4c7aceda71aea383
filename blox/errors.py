"""Exceptions raised by blox.

Every error derives from BloxError and from the builtin it specializes,
so callers that already catch ValueError or RuntimeError keep working.
"""


class BloxError(Exception):
    """Base class for blox errors."""


class ConfigurationError(BloxError, ValueError):
    """A component or simulation option is missing, unknown or invalid."""


class UnresolvableConnectionError(BloxError, ValueError):
    """A connection violates a structural invariant, e.g. an edge into a source."""


class GraphCompilationError(BloxError, ValueError):
    """A graph cannot be compiled into a system."""


class IntegrationError(BloxError, RuntimeError):
    """The external integrator failed.

    Attributes
    ----------
    method : str
        Integration method that was running.
    time_span : tuple of float
        Requested (t0, t1).
    components : tuple of str
        Paths of the compiled leaf components.
    """

    def __init__(self, message, method=None, time_span=None, components=()):
        self.method = method
        self.time_span = time_span
        self.components = tuple(components)
        details = []
        if method is not None:
            details.append(f"method={method}")
        if time_span is not None:
            details.append(f"time_span={tuple(time_span)}")
        if self.components:
            shown = ", ".join(self.components[:5])
            more = len(self.components) - 5
            details.append(f"components=[{shown}{', ...' if more > 0 else ''}]")
        if details:
            message = f"{message} ({'; '.join(details)})"
        super().__init__(message)
