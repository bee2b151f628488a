"""
Module: config

Purpose:
    Configuration dataclass for the captcha manager. Immutable settings
    for the LaTeX/dvipng toolchain, expression generation and expiry.

Key Classes:
    - CaptchaConfig: Main configuration

Dependencies:
    - dataclasses (std)
    - pathlib (std)

Used By:
    - manager.CaptchaManager: Resolved once at construction
    - rendering.toolchain: Command construction
    - cli: Built from command-line arguments
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from math_captcha.errors import InvalidConfigError

# camelCase option names accepted alongside the field names
OPTION_ALIASES = {
    "minOps": "min_ops",
    "maxOps": "max_ops",
    "cleanupTime": "cleanup_time",
}


@dataclass(frozen=True)
class CaptchaConfig:
    """
    Configuration for a captcha manager (immutable).

    Attributes:
        tex: Path to the latex binary
        dvipng: Path to the dvipng binary
        fg: Foreground color (#RRGGBB, rgb(r,g,b) or "transparent")
        bg: Background color (same formats)
        bounding: dvipng -T bounding mode ("tight", "bbox", ...)
        resolution: dvipng -D output resolution in DPI
        path: Working directory for .tex/.dvi/.png files (made absolute
            against the current directory)
        min_ops: Minimum operators per expression
        max_ops: Maximum operators per expression
        values: Pool of literal values
        cleanup_time: Seconds before a ready captcha expires
        timeout: Seconds allowed for each external process
        seed: Random seed for reproducible expressions (None = random)

    Invariants:
        - resolution > 0
        - cleanup_time >= 0
        - timeout > 0

    Generation fields (min_ops, max_ops, values) are checked when an
    expression is generated, so a bad range fails that generate call.

    Example:
        >>> config = CaptchaConfig(fg="#000000", min_ops=1, max_ops=2)
        >>> config.image_path("abc")
        PosixPath('/tmp/math-captcha/abc.png')
    """

    # Toolchain
    tex: str = "/usr/bin/latex"
    dvipng: str = "/usr/bin/dvipng"
    fg: str = "#ffffff"
    bg: str = "Transparent"
    bounding: str = "tight"
    resolution: int = 100
    path: Path = Path("/tmp/math-captcha")

    # Generation
    min_ops: int = 3
    max_ops: int = 5
    values: Tuple[float, ...] = field(default_factory=lambda: tuple(range(1, 10)))

    # Lifecycle
    cleanup_time: float = 600
    timeout: float = 30
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        """Normalize and validate configuration on construction."""
        object.__setattr__(self, "path", Path(self.path).absolute())
        object.__setattr__(self, "values", tuple(self.values))
        if self.resolution <= 0:
            raise InvalidConfigError(f"resolution must be positive: {self.resolution}")
        if self.cleanup_time < 0:
            raise InvalidConfigError(f"cleanup_time must be non-negative: {self.cleanup_time}")
        if self.timeout <= 0:
            raise InvalidConfigError(f"timeout must be positive: {self.timeout}")

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None) -> CaptchaConfig:
        """
        Build a config from an options mapping.

        Accepts both snake_case field names and the camelCase option
        names (minOps, maxOps, cleanupTime). Unspecified options keep
        their defaults.

        Raises:
            InvalidConfigError: If an option name is unknown.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for name, value in (options or {}).items():
            key = OPTION_ALIASES.get(name, name)
            if key not in known:
                raise InvalidConfigError(f"Unknown captcha option: {name!r}")
            kwargs[key] = value
        return cls(**kwargs)

    # ─────────────────────────────────────────────────────────────────────────
    # Artifact Paths
    # ─────────────────────────────────────────────────────────────────────────

    def artifact_path(self, key: str, suffix: str) -> Path:
        return self.path / f"{key}{suffix}"

    def source_path(self, key: str) -> Path:
        return self.artifact_path(key, ".tex")

    def dvi_path(self, key: str) -> Path:
        return self.artifact_path(key, ".dvi")

    def image_path(self, key: str) -> Path:
        return self.artifact_path(key, ".png")
