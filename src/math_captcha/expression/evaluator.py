"""
Module: expression.evaluator

Purpose:
    Compute the numeric answer of an expression tree.

Key Functions:
    - evaluate(): Recursive evaluation

Used By:
    - manager.CaptchaManager.generate
"""

from __future__ import annotations

from typing import Union

from .tree import Expression, Node, OperatorNode


def evaluate(expression: Union[Expression, Node]) -> float:
    """
    Evaluate an expression or subtree.

    Operands are passed to the operator's function in pop order, the
    same order the renderer substitutes them into $1..$n. Division by a
    zero literal follows IEEE-754 (inf/nan) rather than raising.

    Example:
        >>> evaluate(Expression.from_node(LiteralNode(4)))
        4
    """
    node = expression.root if isinstance(expression, Expression) else expression
    if isinstance(node, OperatorNode):
        args = [evaluate(operand) for operand in node.operands]
        return node.operator.evaluate(*args)
    return node.value
