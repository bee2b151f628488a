"""
Module: manager

Purpose:
    Captcha lifecycle management. Generates an expression, renders it to
    an image through the external toolchain on a worker thread, tracks
    each captcha under a content-derived key, checks answers, and
    reclaims files either on request or when the expiry timer fires.

Key Classes:
    - CaptchaManager: Public entry point

Key Functions:
    - content_key(): SHA-256 key of a LaTeX document

Lifecycle (per key):
    PENDING  -> pipeline running, not visible to get_image/check
    READY    -> image on disk, expiry timer armed
    REMOVED  -> record dropped, files deleted

Dependencies:
    - concurrent.futures: Worker pool and result futures
    - threading: Expiry timers, the record map lock and per-key file locks
    - math_captcha.expression: Generation, evaluation, rendering
    - math_captcha.rendering: latex/dvipng toolchain

Used By:
    - math_captcha.cli
"""

from __future__ import annotations

import hashlib
import logging
import math
import random
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from math_captcha.config import CaptchaConfig
from math_captcha.errors import CaptchaRemovedError
from math_captcha.expression import (
    Operator,
    OperatorRegistry,
    default_operators,
    evaluate,
    generate_expression,
    render,
    wrap_latex,
)
from math_captcha.models import CaptchaRecord, CaptchaState
from math_captcha.rendering import TexToolchain

logger = logging.getLogger(__name__)

# File work for a key is serialized on one of these lock stripes
KEY_LOCK_STRIPES = 64

SuccessCallback = Callable[[str], None]
FailureCallback = Callable[[BaseException], None]


def content_key(document: str) -> str:
    """Derive the captcha key from its LaTeX document."""
    return hashlib.sha256(document.encode("utf-8")).hexdigest()


def _scale_round(value: float, places: int) -> float:
    """Round half up at `places` decimals, returned as the scaled integer."""
    shifted = value * 10 ** places
    if not math.isfinite(shifted):
        return shifted
    return math.floor(shifted + 0.5)


def _attach_callbacks(
    future: Future,
    on_success: Optional[SuccessCallback],
    on_failure: Optional[FailureCallback],
) -> None:
    def _done(f: Future) -> None:
        error = f.exception()
        if error is None:
            if on_success is not None:
                on_success(f.result())
        elif on_failure is not None:
            on_failure(error)

    future.add_done_callback(_done)


def _failed(error: BaseException) -> Future:
    future: Future = Future()
    future.set_exception(error)
    return future


class CaptchaManager:
    """
    Generates math captchas and manages their lifetime.

    Identical expressions render to identical documents and therefore
    share a key. A generate call for a key that is already READY
    resolves immediately with that key; one for a key that is PENDING
    joins the running pipeline. File work for a key (rendering and
    deletion) is serialized, and deletion skips a key that was
    regenerated, so a new captcha never loses its files to an old one.

    Attributes:
        config: Immutable configuration

    Example:
        >>> with CaptchaManager(CaptchaConfig(fg="#000000")) as manager:
        ...     key = manager.generate().result()
        ...     image = manager.get_image(key)
        ...     manager.check(key, 42, places=2)
        False
    """

    def __init__(
        self,
        config: Optional[CaptchaConfig] = None,
        *,
        operators: Optional[Sequence[Operator]] = None,
        toolchain: Optional[TexToolchain] = None,
        rng: Optional[random.Random] = None,
        max_workers: int = 4,
    ):
        """
        Initialize the manager.

        Args:
            config: Configuration (defaults apply when None)
            operators: Operators to seed the registry with. None seeds
                the four arithmetic operators.
            toolchain: Rendering toolchain (built from config when None)
            rng: Random source (seeded from config.seed when None)
            max_workers: Concurrent pipelines

        Raises:
            InvalidConfigError: If a color or operator is invalid
        """
        self.config = config or CaptchaConfig()
        self._registry = OperatorRegistry(default_operators() if operators is None else operators)
        self._toolchain = toolchain or TexToolchain(self.config)
        self._rng = rng or random.Random(self.config.seed)
        self._records: Dict[str, CaptchaRecord] = {}
        self._inflight: Dict[str, Future] = {}
        self._lock = threading.Lock()
        self._key_locks = [threading.Lock() for _ in range(KEY_LOCK_STRIPES)]
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="math-captcha"
        )
        self._closed = False

    # ─────────────────────────────────────────────────────────────────────────
    # Operators
    # ─────────────────────────────────────────────────────────────────────────

    def register_operator(self, op: Operator) -> None:
        """
        Add an operator for future expressions.

        Raises:
            RegistryFrozenError: If generate has already been called.
        """
        self._registry.register(op)

    @property
    def operators(self) -> Tuple[Operator, ...]:
        return tuple(self._registry)

    # ─────────────────────────────────────────────────────────────────────────
    # Generation
    # ─────────────────────────────────────────────────────────────────────────

    def generate(
        self,
        on_success: Optional[SuccessCallback] = None,
        on_failure: Optional[FailureCallback] = None,
    ) -> Future:
        """
        Generate a new captcha.

        The expression is drawn and evaluated on the calling thread; the
        write/typeset/rasterize pipeline runs on a worker. The returned
        future resolves with the key once the image is ready, or with
        the error that stopped it, including errors raised while drawing,
        evaluating or rendering the expression. Callbacks, if given, are
        invoked with the same outcome.

        Args:
            on_success: Called as on_success(key)
            on_failure: Called as on_failure(error)

        Returns:
            Future resolving to the captcha key

        Raises:
            RuntimeError: If the manager has been closed
        """
        if self._closed:
            raise RuntimeError("CaptchaManager is closed")
        self._registry.freeze()

        config = self.config
        try:
            expression = generate_expression(
                self._registry, config.min_ops, config.max_ops, config.values, self._rng
            )
            answer = evaluate(expression)
            document = wrap_latex(render(expression))
        except Exception as e:
            logger.warning(f"Captcha generation failed: {e}")
            future = _failed(e)
            _attach_callbacks(future, on_success, on_failure)
            return future

        key = content_key(document)

        with self._lock:
            if self._closed:
                raise RuntimeError("CaptchaManager is closed")
            future = self._inflight.get(key)
            if future is not None:
                logger.debug(f"Captcha {key[:12]} already rendering, joining pipeline")
            elif key in self._records and self._records[key].is_ready:
                logger.debug(f"Captcha {key[:12]} already ready, reusing")
                future = Future()
                future.set_result(key)
            else:
                record = CaptchaRecord(
                    key=key,
                    expression=expression,
                    markup=document,
                    answer=answer,
                    image_path=config.image_path(key),
                )
                self._records[key] = record
                future = Future()
                self._inflight[key] = future
                self._executor.submit(self._run_pipeline, record, future)

        _attach_callbacks(future, on_success, on_failure)
        return future

    def _run_pipeline(self, record: CaptchaRecord, future: Future) -> None:
        key = record.key
        try:
            with self._key_lock(key):
                image = self._toolchain.render(key, record.markup)
        except Exception as e:
            logger.warning(f"Captcha {key[:12]} failed: {e}")
            with self._lock:
                self._release_inflight(key, future)
                if self._records.get(key) is record:
                    del self._records[key]
            record.state = CaptchaState.REMOVED
            self._remove_files(key)
            future.set_exception(e)
            return

        with self._lock:
            self._release_inflight(key, future)
            still_tracked = self._records.get(key) is record
            if still_tracked:
                record.state = CaptchaState.READY
                record.ready_at = time.time()
                record.width, record.height = image.width, image.height
                record.timer = threading.Timer(
                    self.config.cleanup_time, self._expire, args=(key, record)
                )
                record.timer.daemon = True
                record.timer.start()

        if not still_tracked:
            self._remove_files(key)
            future.set_exception(CaptchaRemovedError(f"Captcha {key} was cleaned up while rendering"))
            return

        logger.info(f"Captcha {key[:12]} ready ({image.width}x{image.height})")
        future.set_result(key)

    # ─────────────────────────────────────────────────────────────────────────
    # Lookup
    # ─────────────────────────────────────────────────────────────────────────

    def get_image(self, key: str) -> Optional[Path]:
        """Image path for a ready captcha, None if unknown or pending."""
        record = self._records.get(key)
        if record is None or not record.is_ready:
            return None
        return record.image_path

    def answer(self, key: str) -> Optional[float]:
        """Stored answer for a ready captcha, None if unknown or pending."""
        record = self._records.get(key)
        if record is None or not record.is_ready:
            return None
        return record.answer

    def check(self, key: str, answer: Union[float, str], places: int = 0) -> bool:
        """
        Check an answer, rounding both sides to `places` decimals.

        Both values are multiplied by 10**places and rounded half up to
        an integer before comparison. Unknown or pending keys and
        non-numeric answers return False.

        Args:
            key: Captcha key
            answer: Supplied answer (number or numeric string)
            places: Decimal places to compare at

        Returns:
            True if the rounded answers match
        """
        record = self._records.get(key)
        if record is None or not record.is_ready:
            return False
        try:
            supplied = float(answer)
        except (TypeError, ValueError):
            return False
        return _scale_round(record.answer, places) == _scale_round(supplied, places)

    def keys(self) -> List[str]:
        """Keys of all ready captchas."""
        return [key for key, record in list(self._records.items()) if record.is_ready]

    def __contains__(self, key: object) -> bool:
        record = self._records.get(key)  # type: ignore[arg-type]
        return record is not None and record.is_ready

    # ─────────────────────────────────────────────────────────────────────────
    # Cleanup
    # ─────────────────────────────────────────────────────────────────────────

    def cleanup(self, key: str) -> None:
        """
        Release a captcha.

        Idempotent: unknown or already removed keys are ignored. Cancels
        the expiry timer, drops the record and deletes the key's files.
        File deletion is best effort and never raises. A pending key is
        dropped immediately; its pipeline deletes the files when it ends.
        """
        self._discard(key, None)

    def _expire(self, key: str, record: CaptchaRecord) -> None:
        if self._discard(key, record):
            logger.info(f"Captcha {key[:12]} expired")

    def _discard(self, key: str, expected: Optional[CaptchaRecord]) -> bool:
        with self._lock:
            record = self._records.get(key)
            if record is None or (expected is not None and record is not expected):
                return False
            del self._records[key]
            was_ready = record.is_ready
            if not was_ready:
                # The running pipeline deletes its own files and fails its future
                self._inflight.pop(key, None)
            record.state = CaptchaState.REMOVED

        if record.timer is not None:
            record.timer.cancel()
        if was_ready:
            removed = self._remove_files(key)
            logger.info(f"Cleaned up captcha {key[:12]} ({removed} files)")
        return True

    def _key_lock(self, key: str) -> threading.Lock:
        return self._key_locks[int(key[:8], 16) % len(self._key_locks)]

    def _release_inflight(self, key: str, future: Future) -> None:
        if self._inflight.get(key) is future:
            del self._inflight[key]

    def _remove_files(self, key: str) -> int:
        """
        Delete the artifacts of a key that has no live record.

        Runs under the key's file lock, so a pipeline started for the
        same key writes only after deletion finishes. If such a pipeline
        already owns the key, its files are left alone.
        """
        with self._key_lock(key):
            with self._lock:
                if key in self._records:
                    logger.debug(f"Captcha {key[:12]} was regenerated, keeping its files")
                    return 0
            return self._toolchain.remove_artifacts(key)

    def close(self, cleanup: bool = True) -> None:
        """
        Shut down the manager.

        Waits for running pipelines, then cancels every expiry timer.
        With cleanup=True every record and its files are removed too.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=True)

        for key, record in list(self._records.items()):
            if cleanup:
                self.cleanup(key)
            elif record.timer is not None:
                record.timer.cancel()

    def __enter__(self) -> CaptchaManager:
        return self

    def __exit__(self, *args) -> None:
        self.close()
