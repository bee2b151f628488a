"""Top-level package for math_captcha.

Provides subpackages:
- math_captcha.expression – operator registry, generation, evaluation, rendering
- math_captcha.rendering – latex/dvipng toolchain and color handling
- math_captcha.manager – captcha lifecycle (generate, check, cleanup)
"""

def _get_version() -> str:
    """Get version from pyproject.toml (dev) or importlib.metadata (installed)."""
    from pathlib import Path

    pyproject = Path(__file__).resolve().parent.parent.parent / "pyproject.toml"
    if pyproject.exists():
        try:
            content = pyproject.read_text()
            for line in content.splitlines():
                if line.strip().startswith("version"):
                    # Parse: version = "0.3.0"
                    return line.split("=")[1].strip().strip('"').strip("'")
        except OSError:
            pass

    try:
        from importlib.metadata import version as pkg_version
        return pkg_version("math-captcha")
    except Exception:
        return "0.0.0"


from .config import CaptchaConfig
from .errors import (
    CaptchaError,
    CaptchaRemovedError,
    EmptyRegistryError,
    ExternalToolError,
    InvalidConfigError,
    RegistryFrozenError,
)
from .expression import Operator
from .manager import CaptchaManager

__version__ = _get_version()
__all__: list[str] = [
    "__version__",
    "CaptchaConfig",
    "CaptchaManager",
    "Operator",
    "CaptchaError",
    "CaptchaRemovedError",
    "EmptyRegistryError",
    "ExternalToolError",
    "InvalidConfigError",
    "RegistryFrozenError",
]
