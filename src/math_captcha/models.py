"""
Module: models

Purpose:
    Per-key tracking state owned by the captcha manager.

Key Classes:
    - CaptchaState: PENDING -> READY -> REMOVED
    - CaptchaRecord: Everything known about one captcha key

Used By:
    - manager.CaptchaManager: Key -> record map
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from math_captcha.expression.tree import Expression


class CaptchaState(Enum):
    """Lifecycle state of a captcha key."""
    PENDING = "pending"
    READY = "ready"
    REMOVED = "removed"


@dataclass
class CaptchaRecord:
    """
    Tracking record for one captcha.

    Mutable: the manager moves it through its states and attaches the
    expiry timer once the image exists.

    Attributes:
        key: Content-derived key (SHA-256 of `markup`)
        expression: Expression the captcha was built from
        markup: Full LaTeX document
        answer: Evaluated answer, unrounded
        image_path: Where the PNG is (or will be) written
        created_at: Unix timestamp of generation
        state: Current lifecycle state
        ready_at: Unix timestamp the image became available
        timer: Expiry timer, set when READY
        width: Image width in pixels, set when READY
        height: Image height in pixels, set when READY
    """
    key: str
    expression: Expression
    markup: str
    answer: float
    image_path: Path
    created_at: float = field(default_factory=time.time)
    state: CaptchaState = CaptchaState.PENDING
    ready_at: Optional[float] = None
    timer: Optional[threading.Timer] = field(default=None, repr=False)
    width: int = 0
    height: int = 0

    @property
    def is_ready(self) -> bool:
        return self.state is CaptchaState.READY

    @property
    def expires_at(self) -> Optional[float]:
        """Approximate expiry time, None until the timer is armed."""
        if self.timer is None or self.ready_at is None:
            return None
        return self.ready_at + self.timer.interval
