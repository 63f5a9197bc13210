"""Exception types raised by the equation-to-raster pipeline.

Every error derives from :class:`QraphError` and from the built-in exception
it specializes, so callers may catch either ``QraphError`` or the familiar
``ValueError`` / ``SyntaxError`` / ``TypeError`` / ``RuntimeError``.

Parse-time errors (:class:`MalformedEquation`, :class:`EquationSyntaxError`,
:class:`ArityError`) are raised before a session touches its registry.
Evaluation-time problems inside a render pass never surface as exceptions;
they are recovered per sample.
"""

from __future__ import annotations

from typing import Sequence

__all__ = [
    "QraphError",
    "MalformedEquation",
    "TooManyBranches",
    "EquationSyntaxError",
    "UnknownNameError",
    "ArityError",
    "InvalidPrecision",
    "ColorSpaceExhausted",
    "RenderCancelled",
]


class QraphError(Exception):
    """Base class for all qraph errors."""


class MalformedEquation(QraphError, ValueError):
    """Raised when the brace/comma structure of an equation is invalid."""

    def __init__(self, message: str, *, text: str = "") -> None:
        super().__init__(message)
        self.text = text


class TooManyBranches(MalformedEquation):
    """Raised when an equation closes more than two brace groups."""


class EquationSyntaxError(QraphError, SyntaxError):
    """Raised when a branch member is not a valid expression."""


class UnknownNameError(EquationSyntaxError):
    """Raised when an expression references an unbound variable or function."""


class ArityError(QraphError, TypeError):
    """Raised when a library function receives the wrong number of arguments."""

    def __init__(self, name: str, parameters: Sequence[str], given: int) -> None:
        self.name = name
        self.parameters = tuple(parameters)
        self.given = given
        expected = len(self.parameters)
        noun = "argument" if expected == 1 else "arguments"
        if expected:
            message = (
                f"{name} must have {expected} {noun}: {', '.join(self.parameters)} "
                f"(got {given})"
            )
        else:
            message = f"{name} takes no arguments (got {given})"
        super().__init__(message)

    @property
    def expected(self) -> int:
        return len(self.parameters)


class InvalidPrecision(QraphError, ValueError):
    """Raised for a non-positive, non-finite or oversized sampling step."""


class ColorSpaceExhausted(QraphError, RuntimeError):
    """Raised when no unused registry color could be allocated."""


class RenderCancelled(QraphError, RuntimeError):
    """Raised inside a render pass after cooperative cancellation."""
