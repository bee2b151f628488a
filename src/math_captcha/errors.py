"""
Module: errors

Purpose:
    Exception hierarchy for the captcha library. Everything raised on
    purpose derives from CaptchaError so callers can catch one type.

Key Classes:
    - CaptchaError: Base class
    - InvalidConfigError: Malformed options or generation parameters
    - EmptyRegistryError: Generation attempted with no operators
    - RegistryFrozenError: Operator registered after first generation
    - ExternalToolError: Write/typeset/rasterize stage failed
    - CaptchaRemovedError: Key cleaned up while its image was pending

Used By:
    - expression.operators, expression.generator
    - rendering.colors, rendering.toolchain
    - manager
"""

from __future__ import annotations

from typing import Optional, Sequence


class CaptchaError(Exception):
    """Base class for captcha errors."""
    pass


class InvalidConfigError(CaptchaError, ValueError):
    """Raised when options or generation parameters are malformed."""
    pass


class EmptyRegistryError(CaptchaError):
    """Raised when an expression is requested from an empty registry."""
    pass


class RegistryFrozenError(CaptchaError):
    """Raised when registering an operator after generation has started."""
    pass


class CaptchaRemovedError(CaptchaError):
    """Raised when a key is cleaned up before its pipeline finished."""
    pass


class ExternalToolError(CaptchaError):
    """
    A pipeline stage failed.

    Attributes:
        stage: Stage name ("write", "typeset", "rasterize", "verify")
        command: Command line that was run, if any
        returncode: Process exit code, if the process ran
        output: Captured stdout/stderr, if any
    """

    def __init__(
        self,
        stage: str,
        message: str,
        *,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        output: str = "",
    ) -> None:
        super().__init__(f"{stage} failed: {message}")
        self.stage = stage
        self.command = list(command) if command is not None else None
        self.returncode = returncode
        self.output = output
