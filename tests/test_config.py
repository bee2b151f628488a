"""
Unit Tests for CaptchaConfig

Defaults, validation, option-name aliases and artifact paths.
"""

import pytest
from pathlib import Path

from math_captcha.config import CaptchaConfig
from math_captcha.errors import InvalidConfigError


class TestCaptchaConfig:
    """Tests for CaptchaConfig dataclass."""

    def test_init_when_defaults_then_documented_values(self):
        config = CaptchaConfig()
        assert config.tex == "/usr/bin/latex"
        assert config.dvipng == "/usr/bin/dvipng"
        assert config.fg == "#ffffff"
        assert config.bg == "Transparent"
        assert config.bounding == "tight"
        assert config.resolution == 100
        assert config.path == Path("/tmp/math-captcha")
        assert (config.min_ops, config.max_ops) == (3, 5)
        assert config.values == (1, 2, 3, 4, 5, 6, 7, 8, 9)
        assert config.cleanup_time == 600

    def test_init_when_frozen_then_immutable(self):
        config = CaptchaConfig()
        with pytest.raises(AttributeError):
            config.resolution = 200  # type: ignore

    def test_init_when_path_string_then_converted(self):
        config = CaptchaConfig(path="/var/tmp/cap", values=[1, 2])
        assert config.path == Path("/var/tmp/cap")
        assert config.values == (1, 2)

    @pytest.mark.parametrize("kwargs", [
        {"resolution": 0},
        {"cleanup_time": -1},
        {"timeout": 0},
    ])
    def test_init_when_invalid_then_raises_error(self, kwargs):
        with pytest.raises(InvalidConfigError):
            CaptchaConfig(**kwargs)

    def test_init_when_bad_operator_range_then_deferred_to_generation(self):
        """Generation fields are checked by generate, not construction."""
        config = CaptchaConfig(min_ops=5, max_ops=1, values=())
        assert config.min_ops == 5

    # ─────────────────────────────────────────────────────────────────────────
    # from_options
    # ─────────────────────────────────────────────────────────────────────────

    def test_from_options_when_camel_case_then_mapped(self):
        config = CaptchaConfig.from_options(
            {"minOps": 1, "maxOps": 2, "cleanupTime": 30, "fg": "#000000"}
        )
        assert (config.min_ops, config.max_ops) == (1, 2)
        assert config.cleanup_time == 30
        assert config.fg == "#000000"
        assert config.bg == "Transparent"

    def test_from_options_when_unknown_then_raises_error(self):
        with pytest.raises(InvalidConfigError, match="colour"):
            CaptchaConfig.from_options({"colour": "red"})

    def test_from_options_when_none_then_defaults(self):
        assert CaptchaConfig.from_options(None) == CaptchaConfig()

    def test_image_path_when_key_given_then_png_in_work_dir(self, tmp_path):
        config = CaptchaConfig(path=tmp_path)
        assert config.image_path("abc") == tmp_path / "abc.png"
        assert config.source_path("abc") == tmp_path / "abc.tex"
        assert config.dvi_path("abc") == tmp_path / "abc.dvi"

    def test_init_when_relative_path_then_made_absolute(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = CaptchaConfig(path="work")
        assert config.path.is_absolute()
        assert config.path == tmp_path.resolve() / "work"
        assert config.image_path("abc") == tmp_path.resolve() / "work" / "abc.png"
