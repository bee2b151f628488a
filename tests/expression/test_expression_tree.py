"""
Unit Tests for Expression tree decoding

Covers token-stack balance, pop-order decoding and the round trip from
hand-built trees back to token stacks.
"""

import pytest

from math_captcha.expression.operators import default_operators
from math_captcha.expression.tree import (
    Expression,
    LiteralNode,
    OperatorNode,
    consumption_balance,
    precedence_of,
)

ADD, SUB, MUL, DIV = default_operators()


def lit(value):
    return LiteralNode(value)


class TestConsumptionBalance:

    def test_balance_when_well_formed_then_one(self):
        assert consumption_balance([lit(1), lit(2), ADD, lit(3), SUB]) == 1

    def test_balance_when_underflow_then_raises_error(self):
        with pytest.raises(ValueError, match="underflow"):
            consumption_balance([lit(1), ADD])

    def test_balance_when_extra_values_then_counts_them(self):
        assert consumption_balance([lit(1), lit(2), lit(3), ADD]) == 2


class TestExpressionDecoding:

    def test_from_tokens_when_binary_then_first_operand_is_last_pushed(self):
        """Pop order: the value nearest the end becomes operand 1."""
        expr = Expression.from_tokens([lit(2), lit(3), SUB])
        assert isinstance(expr.root, OperatorNode)
        assert expr.root.operator is SUB
        assert expr.root.operands == (lit(3), lit(2))

    def test_from_tokens_when_chained_then_nested_on_second_operand(self):
        """Generator-style stacks nest the earlier operator as operand 2."""
        expr = Expression.from_tokens([lit(1), lit(2), ADD, lit(3), MUL])
        root = expr.root
        assert root.operator is MUL
        assert root.operands[0] == lit(3)
        assert root.operands[1].operator is ADD

    def test_from_tokens_when_unbalanced_then_raises_error(self):
        with pytest.raises(ValueError):
            Expression.from_tokens([lit(1), lit(2)])

    def test_from_node_when_round_tripped_then_same_tree(self):
        tree = OperatorNode(SUB, (OperatorNode(SUB, (lit(3), lit(4))), lit(5)))
        expr = Expression.from_node(tree)
        assert Expression.from_tokens(expr.tokens).root == tree
        assert expr.operator_count == 2

    def test_operator_node_when_wrong_operand_count_then_raises_error(self):
        with pytest.raises(ValueError):
            OperatorNode(ADD, (lit(1),))

    def test_precedence_of_when_literal_then_zero(self):
        assert precedence_of(lit(9)) == 0
        assert precedence_of(OperatorNode(MUL, (lit(1), lit(2)))) == MUL.precedence
