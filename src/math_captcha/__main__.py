"""Run the captcha CLI with ``python -m math_captcha``."""

from math_captcha.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
