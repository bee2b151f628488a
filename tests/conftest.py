import pytest
import random
import stat
import sys
import threading
from pathlib import Path
from typing import Optional
from PIL import Image

# Add src to sys.path so we can import math_captcha
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())

from math_captcha.config import CaptchaConfig
from math_captcha.errors import ExternalToolError
from math_captcha.rendering.toolchain import RenderedImage, TexToolchain


FAKE_LATEX = """#!{python}
import sys
from pathlib import Path

args = sys.argv[1:]
out_dir = Path(".")
for arg in args:
    if arg.startswith("-output-directory="):
        out_dir = Path(arg.split("=", 1)[1])
source = Path(args[-1])
if not source.exists():
    sys.stderr.write("missing source")
    sys.exit(1)
for suffix in (".dvi", ".aux", ".log"):
    (out_dir / (source.stem + suffix)).write_text("fake " + suffix)
"""

FAKE_DVIPNG = """#!{python}
import sys
from PIL import Image

args = sys.argv[1:]
output = args[args.index("-o") + 1]
Image.new("RGBA", (48, 16), (0, 0, 0, 0)).save(output, format="PNG")
"""

FAILING_TOOL = """#!{python}
import sys
sys.stderr.write("fatal error")
sys.exit(3)
"""


def _write_script(path: Path, body: str) -> Path:
    path.write_text(body.format(python=sys.executable))
    path.chmod(path.stat().st_mode | stat.S_IEXEC | stat.S_IXGRP | stat.S_IXOTH)
    return path


class StubToolchain(TexToolchain):
    """
    In-process stand-in for latex/dvipng.

    Writes the .tex source and a Pillow PNG, optionally failing or
    blocking until `release` is set so tests can observe PENDING state.
    With block_removal, artifact deletion waits for `removal_release`.
    """

    def __init__(
        self,
        config: CaptchaConfig,
        fail_stage: Optional[str] = None,
        block: bool = False,
        block_removal: bool = False,
    ):
        super().__init__(config)
        self.fail_stage = fail_stage
        self.release = threading.Event()
        self.started = threading.Event()
        if not block:
            self.release.set()
        self.removal_release = threading.Event()
        self.removal_started = threading.Event()
        if not block_removal:
            self.removal_release.set()
        self.render_calls = 0

    def render(self, key: str, document: str) -> RenderedImage:
        self.render_calls += 1
        self.started.set()
        self.release.wait(timeout=5)
        self.write_source(key, document)
        if self.fail_stage == "typeset":
            raise ExternalToolError("typeset", "latex exited with status 1", returncode=1)
        self.config.dvi_path(key).write_text("dvi")
        if self.fail_stage == "rasterize":
            raise ExternalToolError("rasterize", "dvipng exited with status 1", returncode=1)
        image = self.config.image_path(key)
        Image.new("RGBA", (40, 20)).save(image, format="PNG")
        return self.verify(image)

    def remove_artifacts(self, key: str) -> int:
        self.removal_started.set()
        self.removal_release.wait(timeout=5)
        return super().remove_artifacts(key)


# Common test fixtures
@pytest.fixture
def rng():
    """Deterministic random source."""
    return random.Random(1234)


@pytest.fixture
def work_dir(tmp_path: Path):
    """Captcha working directory."""
    path = tmp_path / "captcha"
    path.mkdir()
    return path


@pytest.fixture
def fake_tools(tmp_path: Path):
    """Executable fake latex and dvipng scripts."""
    if sys.platform.startswith("win"):
        pytest.skip("fake tool scripts need a POSIX shebang")
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    return {
        "tex": _write_script(bin_dir / "latex", FAKE_LATEX),
        "dvipng": _write_script(bin_dir / "dvipng", FAKE_DVIPNG),
        "failing": _write_script(bin_dir / "broken", FAILING_TOOL),
    }


@pytest.fixture
def stub_config(work_dir: Path):
    """Config pointing at the working directory, long expiry."""
    return CaptchaConfig(path=work_dir, fg="#000000", cleanup_time=60)


@pytest.fixture
def make_manager(stub_config):
    """Factory for managers backed by StubToolchain; closed at teardown."""
    from math_captcha.manager import CaptchaManager

    created = []

    def _make(config=None, *, fail_stage=None, block=False, block_removal=False, **kwargs):
        config = config or stub_config
        toolchain = StubToolchain(
            config, fail_stage=fail_stage, block=block, block_removal=block_removal
        )
        manager = CaptchaManager(config, toolchain=toolchain, **kwargs)
        created.append((manager, toolchain))
        return manager, toolchain

    yield _make
    for manager, toolchain in created:
        toolchain.release.set()
        toolchain.removal_release.set()
        manager.close()
