"""
Module: rendering.toolchain

Purpose:
    Drive the external LaTeX -> DVI -> PNG toolchain for one captcha.
    Each stage raises ExternalToolError on failure so the caller can
    abort the pipeline at the first broken step.

Key Classes:
    - TexToolchain: Command construction and stage execution
    - RenderedImage: Path and pixel size of a finished image

Pipeline:
    1. write_source: <key>.tex
    2. typeset: latex -> <key>.dvi
    3. rasterize: dvipng -> <key>.png
    4. verify: Pillow opens the PNG and reports its size

Dependencies:
    - subprocess (std): External process execution
    - PIL.Image: Output verification

Used By:
    - manager.CaptchaManager: Runs the pipeline on worker threads
"""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Tuple

from PIL import Image

from math_captcha.config import CaptchaConfig
from math_captcha.errors import ExternalToolError

from .colors import parse_color

logger = logging.getLogger(__name__)

# Everything latex and dvipng may leave behind for a key
ARTIFACT_SUFFIXES: Tuple[str, ...] = (".tex", ".aux", ".dvi", ".png", ".log")


@dataclass(frozen=True)
class RenderedImage:
    """
    A rasterized captcha image.

    Attributes:
        path: PNG file location
        width: Pixel width
        height: Pixel height
    """
    path: Path
    width: int
    height: int


class TexToolchain:
    """
    Runs latex and dvipng for captcha documents.

    Colors are normalized once at construction, so an unparseable
    color fails when the manager is built rather than per captcha.

    Example:
        >>> toolchain = TexToolchain(CaptchaConfig(fg="#000000"))
        >>> image = toolchain.render("abc123", wrap_latex("2 + 2"))
        >>> image.path
        PosixPath('/tmp/math-captcha/abc123.png')
    """

    def __init__(self, config: CaptchaConfig):
        self.config = config
        self.fg = parse_color(config.fg)
        self.bg = parse_color(config.bg)

    # ─────────────────────────────────────────────────────────────────────────
    # Command Construction
    # ─────────────────────────────────────────────────────────────────────────

    def latex_command(self, source: Path) -> List[str]:
        return [
            self.config.tex,
            "-halt-on-error",
            f"-output-directory={self.config.path}",
            str(source),
        ]

    def dvipng_command(self, dvi: Path, image: Path) -> List[str]:
        return [
            self.config.dvipng,
            "-fg", self.fg,
            "-bg", self.bg,
            "-T", self.config.bounding,
            "-D", str(self.config.resolution),
            "-o", str(image),
            str(dvi),
        ]

    # ─────────────────────────────────────────────────────────────────────────
    # Stages
    # ─────────────────────────────────────────────────────────────────────────

    def write_source(self, key: str, document: str) -> Path:
        """Write the LaTeX document for `key`, creating the work directory."""
        source = self.config.source_path(key)
        try:
            source.parent.mkdir(parents=True, exist_ok=True)
            source.write_text(document, encoding="utf-8")
        except OSError as e:
            raise ExternalToolError("write", f"cannot write {source}: {e}") from e
        logger.debug(f"Wrote {source.name}")
        return source

    def typeset(self, key: str) -> Path:
        """Run latex on <key>.tex and return the .dvi path."""
        self._run("typeset", self.latex_command(self.config.source_path(key)))
        return self.config.dvi_path(key)

    def rasterize(self, key: str) -> Path:
        """Run dvipng on <key>.dvi and return the .png path."""
        image = self.config.image_path(key)
        self._run("rasterize", self.dvipng_command(self.config.dvi_path(key), image))
        return image

    def verify(self, image: Path) -> RenderedImage:
        """
        Confirm the rasterizer produced a readable image.

        Raises:
            ExternalToolError: If the file is missing or not a valid image.
        """
        try:
            with Image.open(image) as img:
                img.verify()
                width, height = img.size
        except Exception as e:
            raise ExternalToolError("verify", f"invalid image {image}: {e}") from e
        return RenderedImage(path=image, width=width, height=height)

    def render(self, key: str, document: str) -> RenderedImage:
        """
        Run every stage for one captcha document.

        Args:
            key: Content key, used as the artifact base name
            document: Full LaTeX document

        Returns:
            The verified image

        Raises:
            ExternalToolError: From the first stage that fails
        """
        start = time.perf_counter()
        self.write_source(key, document)
        self.typeset(key)
        image = self.verify(self.rasterize(key))
        elapsed = time.perf_counter() - start
        logger.debug(f"Rendered {key[:12]} ({image.width}x{image.height}) in {elapsed:.2f}s")
        return image

    def remove_artifacts(self, key: str) -> int:
        """
        Delete every file the pipeline may have produced for `key`.

        Best effort: deletion errors are logged and skipped.

        Returns:
            Number of files removed
        """
        removed = 0
        for suffix in ARTIFACT_SUFFIXES:
            path = self.config.artifact_path(key, suffix)
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.debug(f"Could not remove {path}: {e}")
        return removed

    # ─────────────────────────────────────────────────────────────────────────
    # Process Execution
    # ─────────────────────────────────────────────────────────────────────────

    def _run(self, stage: str, cmd: Sequence[str]) -> None:
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                list(cmd),
                cwd=str(self.config.path),
                capture_output=True,
                text=True,
                timeout=self.config.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ExternalToolError(
                stage, f"timed out after {self.config.timeout}s", command=cmd
            ) from e
        except OSError as e:
            raise ExternalToolError(stage, f"cannot execute {cmd[0]}: {e}", command=cmd) from e

        if result.returncode != 0:
            output = (result.stdout or "") + (result.stderr or "")
            raise ExternalToolError(
                stage,
                f"{Path(cmd[0]).name} exited with status {result.returncode}",
                command=cmd,
                returncode=result.returncode,
                output=output,
            )
