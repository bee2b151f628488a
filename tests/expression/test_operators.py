"""
Unit Tests for Operator and OperatorRegistry

Tests operator validation, the default arithmetic set and registry
picking/freezing behavior.
"""

import math
import random

import pytest

from math_captcha.errors import EmptyRegistryError, InvalidConfigError, RegistryFrozenError
from math_captcha.expression.operators import Operator, OperatorRegistry, default_operators


def _negate() -> Operator:
    return Operator(2, True, True, "-$1", 1, lambda a: -a, "negate")


class TestOperator:
    """Tests for Operator dataclass."""

    def test_init_when_valid_then_creates_operator(self):
        """Valid operators keep their fields."""
        op = _negate()
        assert op.arity == 1
        assert op.evaluate(3) == -3

    def test_init_when_zero_arity_then_raises_error(self):
        with pytest.raises(InvalidConfigError, match="arity"):
            Operator(2, True, True, "x", 0, lambda: 0)

    def test_init_when_zero_precedence_then_raises_error(self):
        """Precedence 0 is reserved for literals."""
        with pytest.raises(InvalidConfigError, match="precedence"):
            Operator(0, True, True, "$1 + $2", 2, lambda a, b: a + b)

    def test_init_when_placeholder_exceeds_arity_then_raises_error(self):
        with pytest.raises(InvalidConfigError, match=r"\$3"):
            Operator(5, True, True, "$1 + $3", 2, lambda a, b: a + b)

    def test_init_when_frozen_then_immutable(self):
        op = _negate()
        with pytest.raises(AttributeError):
            op.arity = 2  # type: ignore

    def test_eq_when_same_fields_then_distinct_identity(self):
        """Operators compare by identity."""
        assert _negate() != _negate()


class TestDefaultOperators:
    """Tests for the four built-in arithmetic operators."""

    def test_default_operators_when_built_then_four_binary_operators(self):
        ops = default_operators()
        assert [op.name for op in ops] == ["add", "subtract", "multiply", "divide"]
        assert all(op.arity == 2 for op in ops)

    def test_default_operators_when_evaluated_then_arithmetic(self):
        add, sub, mul, div = default_operators()
        assert add.evaluate(2, 3) == 5
        assert sub.evaluate(2, 3) == -1
        assert mul.evaluate(2, 3) == 6
        assert div.evaluate(3, 2) == 1.5

    def test_default_operators_when_checked_then_grouping_flags(self):
        add, sub, mul, div = default_operators()
        assert add.associative and mul.associative
        assert not sub.associative and not div.associative
        assert sub.groups
        assert not div.groups
        assert mul.precedence < add.precedence

    def test_divide_when_zero_divisor_then_ieee_result(self):
        div = default_operators()[3]
        assert div.evaluate(1, 0) == math.inf
        assert div.evaluate(-1, 0) == -math.inf
        assert math.isnan(div.evaluate(0, 0))


class TestOperatorRegistry:
    """Tests for OperatorRegistry."""

    def test_pick_when_empty_then_raises_error(self):
        with pytest.raises(EmptyRegistryError):
            OperatorRegistry().pick(random.Random(0))

    def test_register_when_called_then_appends_in_order(self):
        registry = OperatorRegistry(default_operators())
        extra = _negate()
        registry.register(extra)
        assert len(registry) == 5
        assert list(registry)[-1] is extra

    def test_register_when_not_operator_then_raises_error(self):
        with pytest.raises(InvalidConfigError):
            OperatorRegistry().register("plus")  # type: ignore

    def test_register_when_frozen_then_raises_error(self):
        registry = OperatorRegistry(default_operators())
        registry.freeze()
        assert registry.frozen
        with pytest.raises(RegistryFrozenError):
            registry.register(_negate())

    def test_pick_when_many_draws_then_every_operator_seen(self):
        registry = OperatorRegistry(default_operators())
        rng = random.Random(7)
        seen = {registry.pick(rng).name for _ in range(200)}
        assert seen == {"add", "subtract", "multiply", "divide"}
