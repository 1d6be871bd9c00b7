"""
DSL Errors
==========

Exception hierarchy raised inside the sandbox pipeline. Every error converts to
a closed ``Fault`` value before leaving the evaluator.
"""

from typing import List, Optional

from dsl_playground.models.schemas import Fault, FaultKind, SourceLocation


class DSLError(Exception):
    """Base class for errors raised while processing DSL source."""

    kind: FaultKind = FaultKind.RUNTIME_ERROR

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        cause: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message or self.kind.value
        self.location = location
        self.cause = cause
        self.frames: List[str] = []

    def add_frame(self, frame: str) -> None:
        """Record an enclosing DSL call for the developer trace."""
        self.frames.append(frame)

    def to_fault(self, fallback: Optional[SourceLocation] = None, trace: Optional[str] = None) -> Fault:
        """Convert into a Fault, using ``fallback`` when no location is known."""
        lines = [f"  in {frame}" for frame in self.frames]
        if trace:
            lines.append(trace)
        return Fault(
            kind=self.kind,
            message=self.message,
            location=self.location or fallback,
            cause=self.cause,
            trace="\n".join(lines) or None,
        )


class DSLSyntaxError(DSLError):
    """Source does not conform to the DSL grammar."""

    kind = FaultKind.SYNTAX_ERROR


class DSLRuntimeError(DSLError):
    """Evaluation failed inside the sandbox."""

    kind = FaultKind.RUNTIME_ERROR


class DSLSecurityError(DSLError):
    """Source attempted to reach a host capability."""

    kind = FaultKind.SECURITY_VIOLATION


class DSLTimeoutError(DSLError):
    """Evaluation exceeded its wall-clock budget."""

    kind = FaultKind.TIMEOUT


class RegistryMiss(LookupError):
    """A name was not found in the element registry or dispatch tables."""

    pass
