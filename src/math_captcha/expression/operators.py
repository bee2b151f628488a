"""
Module: expression.operators

Purpose:
    Operator definitions and the per-manager operator registry. An
    Operator carries everything needed to both evaluate and typeset one
    node of an expression tree.

Key Classes:
    - Operator: Immutable operator description
    - OperatorRegistry: Ordered, append-only operator set

Key Functions:
    - default_operators(): The four arithmetic operators

Dependencies:
    - dataclasses (std)
    - random (std)

Used By:
    - expression.generator: Picks operators at random
    - expression.evaluator / expression.renderer: Read operator fields
    - manager: Owns one registry per instance
"""

from __future__ import annotations

import logging
import math
import random
import re
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence

from math_captcha.errors import EmptyRegistryError, InvalidConfigError, RegistryFrozenError

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\$(\d+)")


@dataclass(frozen=True, eq=False)
class Operator:
    """
    A single operator usable in generated expressions.

    Attributes:
        precedence: Binding strength, lower binds tighter. Literals
            use 0, so operators must be >= 1.
        associative: Whether same-precedence chains render without
            grouping on either side.
        groups: Whether operands may need parentheses at all. False for
            operators whose layout already groups (fraction bars).
        template: LaTeX with $1..$arity standing in for operands
        arity: Number of operands
        evaluate: Pure function of `arity` numbers
        name: Label for logs

    Invariants:
        - arity >= 1
        - precedence >= 1
        - template placeholders are within 1..arity

    Example:
        >>> plus = Operator(5, True, True, "$1 + $2", 2, lambda a, b: a + b, "add")
        >>> plus.evaluate(2, 3)
        5
    """

    precedence: int
    associative: bool
    groups: bool
    template: str
    arity: int
    evaluate: Callable[..., float]
    name: str = ""

    def __post_init__(self) -> None:
        """Validate operator on construction."""
        if self.arity < 1:
            raise InvalidConfigError(f"Operator arity must be positive: {self.arity}")
        if self.precedence < 1:
            raise InvalidConfigError(
                f"Operator precedence must be >= 1 (0 is reserved for literals): {self.precedence}"
            )
        for match in PLACEHOLDER_PATTERN.finditer(self.template):
            index = int(match.group(1))
            if not 1 <= index <= self.arity:
                raise InvalidConfigError(
                    f"Template {self.template!r} references ${index} "
                    f"but arity is {self.arity}"
                )

    def __repr__(self) -> str:
        label = self.name or self.template
        return f"Operator({label!r}, arity={self.arity}, precedence={self.precedence})"


def _divide(a: float, b: float) -> float:
    """Division with IEEE-754 results for a zero divisor."""
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def default_operators() -> List[Operator]:
    """
    Build the four arithmetic operators.

    Subtraction is non-associative so its later operands are grouped.
    Division is non-associative too, but the fraction bar already
    groups, so it never adds parentheses.
    """
    return [
        Operator(5, True, True, "$1 + $2", 2, lambda a, b: a + b, "add"),
        Operator(5, False, True, "$1 - $2", 2, lambda a, b: a - b, "subtract"),
        Operator(3, True, True, "$1 \\times $2", 2, lambda a, b: a * b, "multiply"),
        Operator(3, False, False, "\\frac{$1}{$2}", 2, _divide, "divide"),
    ]


class OperatorRegistry:
    """
    Ordered, append-only collection of operators.

    Starts empty. Once frozen (the manager does this on the first
    generate), registration raises RegistryFrozenError so operators
    cannot change under an in-flight generation.

    Example:
        >>> registry = OperatorRegistry(default_operators())
        >>> len(registry)
        4
        >>> registry.pick(random.Random(1)).arity
        2
    """

    def __init__(self, operators: Optional[Sequence[Operator]] = None):
        self._operators: List[Operator] = []
        self._frozen = False
        for op in operators or ():
            self.register(op)

    def register(self, op: Operator) -> None:
        """
        Append an operator.

        Raises:
            RegistryFrozenError: If the registry has been frozen.
            InvalidConfigError: If `op` is not an Operator.
        """
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register {op!r}: registry is frozen")
        if not isinstance(op, Operator):
            raise InvalidConfigError(f"Expected an Operator, got {type(op).__name__}")
        self._operators.append(op)
        logger.debug(f"Registered {op!r}")

    def pick(self, rng: random.Random) -> Operator:
        """
        Return a uniformly random operator.

        Raises:
            EmptyRegistryError: If no operators are registered.
        """
        if not self._operators:
            raise EmptyRegistryError("No operators registered")
        return rng.choice(self._operators)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._operators)

    def __iter__(self) -> Iterator[Operator]:
        return iter(tuple(self._operators))
