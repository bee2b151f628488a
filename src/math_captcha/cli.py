"""
Module: cli

Purpose:
    Command-line front end: generate one captcha, print its key and
    image path, optionally check an answer, then clean up.

Key Functions:
    - build_parser(): argparse definition
    - config_from_args(): Namespace -> CaptchaConfig
    - main(): Entry point, returns an exit code

Exit Codes:
    0: Captcha generated (and answer correct, if checked)
    1: Generation failed
    2: Answer checked and wrong

Used By:
    - python -m math_captcha
    - math-captcha console script
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from math_captcha.config import CaptchaConfig
from math_captcha.errors import CaptchaError
from math_captcha.manager import CaptchaManager

logger = logging.getLogger(__name__)

DEFAULTS = CaptchaConfig()


def _parse_values(text: str) -> List[float]:
    values = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        number = float(part)
        values.append(int(number) if number.is_integer() else number)
    return values


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="math-captcha",
        description="Generate a typeset arithmetic captcha image.",
    )

    # Toolchain
    parser.add_argument("--tex", default=DEFAULTS.tex, help="Path to latex binary")
    parser.add_argument("--dvipng", default=DEFAULTS.dvipng, help="Path to dvipng binary")
    parser.add_argument("--fg", default=DEFAULTS.fg, help="Foreground color (#RRGGBB or rgb(r,g,b))")
    parser.add_argument("--bg", default=DEFAULTS.bg, help="Background color or 'transparent'")
    parser.add_argument("--bounding", default=DEFAULTS.bounding, help="dvipng -T bounding mode")
    parser.add_argument("--resolution", type=int, default=DEFAULTS.resolution, help="Output DPI")
    parser.add_argument("--path", type=Path, default=DEFAULTS.path, help="Working directory")

    # Generation
    parser.add_argument("--min-ops", type=int, default=DEFAULTS.min_ops, help="Minimum operators")
    parser.add_argument("--max-ops", type=int, default=DEFAULTS.max_ops, help="Maximum operators")
    parser.add_argument(
        "--values",
        type=_parse_values,
        default=list(DEFAULTS.values),
        help="Comma-separated value pool (e.g. 1,2,3)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")

    # Actions
    parser.add_argument("--show-answer", action="store_true", help="Print the expected answer")
    parser.add_argument("--check", metavar="ANSWER", help="Check an answer against the captcha")
    parser.add_argument("--places", type=int, default=2, help="Decimal places used by --check")
    parser.add_argument("--keep", action="store_true", help="Leave the files on disk")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def config_from_args(args: argparse.Namespace) -> CaptchaConfig:
    return CaptchaConfig(
        tex=args.tex,
        dvipng=args.dvipng,
        fg=args.fg,
        bg=args.bg,
        bounding=args.bounding,
        resolution=args.resolution,
        path=args.path,
        min_ops=args.min_ops,
        max_ops=args.max_ops,
        values=tuple(args.values),
        seed=args.seed,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(message)s",
    )

    try:
        manager = CaptchaManager(config_from_args(args))
    except CaptchaError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    try:
        try:
            key = manager.generate().result()
        except CaptchaError as e:
            logger.error(f"Captcha generation failed: {e}")
            return 1

        print(f"key:   {key}")
        print(f"image: {manager.get_image(key)}")
        if args.show_answer:
            print(f"answer: {manager.answer(key)}")

        if args.check is not None:
            correct = manager.check(key, args.check, args.places)
            print("Correct!" if correct else "Incorrect!")
            if not correct:
                return 2
        return 0
    finally:
        manager.close(cleanup=not args.keep)
