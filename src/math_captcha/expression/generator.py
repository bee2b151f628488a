"""
Module: expression.generator

Purpose:
    Random expression synthesis. Builds a post-order token stack that is
    well-formed by construction, then decodes it into an Expression.

Key Functions:
    - generate_expression(): Draw one random expression

Dependencies:
    - random (std)
    - expression.operators: OperatorRegistry
    - expression.tree: Expression, LiteralNode

Used By:
    - manager.CaptchaManager.generate
"""

from __future__ import annotations

import logging
import random
from typing import List, Optional, Sequence

from math_captcha.errors import InvalidConfigError

from .operators import OperatorRegistry
from .tree import Expression, LiteralNode, Token

logger = logging.getLogger(__name__)


def validate_generation_params(min_ops: int, max_ops: int, values: Sequence[float]) -> None:
    """
    Check generation parameters.

    Raises:
        InvalidConfigError: If values is empty, an operator count is not
            an integer, or the operator range is invalid.
    """
    if not values:
        raise InvalidConfigError("Value pool must not be empty")
    for name, count in (("min_ops", min_ops), ("max_ops", max_ops)):
        if isinstance(count, bool) or not isinstance(count, int):
            raise InvalidConfigError(f"{name} must be an integer: {count!r}")
    if min_ops < 1 or max_ops < 1:
        raise InvalidConfigError(
            f"Operator counts must be >= 1: min_ops={min_ops}, max_ops={max_ops}"
        )
    if min_ops > max_ops:
        raise InvalidConfigError(f"min_ops ({min_ops}) must be <= max_ops ({max_ops})")


def generate_expression(
    registry: OperatorRegistry,
    min_ops: int,
    max_ops: int,
    values: Sequence[float],
    rng: Optional[random.Random] = None,
) -> Expression:
    """
    Generate a random expression.

    Algorithm:
    1. Draw the operator count uniformly from [min_ops, max_ops]
    2. For each operator, top up pending operands with random values
       until the operator's arity is met, then push the operator
    3. Each operator turns `arity` pending operands into one

    After the first operator there is always exactly one pending
    operand, so the stack reduces to a single value for every draw.

    Args:
        registry: Operators to draw from
        min_ops: Minimum operator count (>= 1)
        max_ops: Maximum operator count (>= min_ops)
        values: Pool of literal values
        rng: Random source (module-level random if None)

    Returns:
        The generated Expression

    Raises:
        InvalidConfigError: If parameters are invalid
        EmptyRegistryError: If the registry has no operators

    Example:
        >>> registry = OperatorRegistry(default_operators())
        >>> expr = generate_expression(registry, 1, 1, [2], random.Random(0))
        >>> expr.operator_count
        1
    """
    validate_generation_params(min_ops, max_ops, values)
    rng = rng or random.Random()

    op_count = rng.randint(min_ops, max_ops)
    tokens: List[Token] = []
    pending = 0

    for _ in range(op_count):
        op = registry.pick(rng)
        while pending < op.arity:
            tokens.append(LiteralNode(rng.choice(values)))
            pending += 1
        tokens.append(op)
        pending -= op.arity - 1

    logger.debug(f"Generated expression with {op_count} operators, {len(tokens)} tokens")
    return Expression.from_tokens(tokens)
