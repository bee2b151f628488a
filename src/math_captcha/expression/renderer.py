"""
Module: expression.renderer

Purpose:
    Typeset an expression tree as LaTeX math, inserting parentheses
    where operator precedence and associativity require them, and wrap
    the result in a standalone LaTeX document.

Key Functions:
    - render(): Expression tree -> LaTeX math string
    - needs_grouping(): Parenthesization rule for one operand
    - substitute(): Fill $1..$n placeholders in a template
    - wrap_latex(): Math string -> full document

Dependencies:
    - expression.operators: Placeholder pattern
    - expression.tree: Node types

Used By:
    - manager.CaptchaManager.generate
"""

from __future__ import annotations

from typing import Sequence, Union

from .operators import PLACEHOLDER_PATTERN, Operator
from .tree import Expression, Node, OperatorNode, precedence_of

DOCUMENT_TEMPLATE = (
    "\\documentclass[12pt]{article}\n"
    "\\usepackage{amsmath}\n"
    "\\pagestyle{empty}\n\n"
    "\\begin{document}\n\n"
    "\\begin{displaymath}\n"
    "%s\n"
    "\\end{displaymath}\n\n"
    "\\end{document}"
)


def needs_grouping(op: Operator, position: int, operand: Node) -> bool:
    """
    Decide whether operand `position` (0-indexed) of `op` gets parentheses.

    Literals never do. Otherwise an operand is grouped when `op` groups
    at all and either the operand binds looser than `op`, or it sits past
    the first position of a non-associative operator.

    Example:
        3 - (4 - 5): the inner subtraction is operand 1 of a
        non-associative operator, so it is grouped.
        (3 - 4) - 5: operand 0 at equal precedence renders as 3 - 4 - 5.
    """
    sub_precedence = precedence_of(operand)
    if not op.groups or sub_precedence == 0:
        return False
    if sub_precedence > op.precedence:
        return True
    return position > 0 and not op.associative


def substitute(template: str, args: Sequence[str]) -> str:
    """Replace each $i in `template` with args[i - 1] in a single pass."""
    return PLACEHOLDER_PATTERN.sub(lambda m: args[int(m.group(1)) - 1], template)


def format_literal(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render(expression: Union[Expression, Node]) -> str:
    """
    Render an expression or subtree as LaTeX math.

    Example:
        >>> render(Expression.from_tokens([LiteralNode(2), LiteralNode(2), add]))
        '2 + 2'
    """
    node = expression.root if isinstance(expression, Expression) else expression
    if not isinstance(node, OperatorNode):
        return format_literal(node.value)

    args = []
    for position, operand in enumerate(node.operands):
        text = render(operand)
        if needs_grouping(node.operator, position, operand):
            text = f"({text})"
        args.append(text)
    return substitute(node.operator.template, args)


def wrap_latex(math: str) -> str:
    """Wrap a math string in LaTeX document scaffolding."""
    return DOCUMENT_TEMPLATE % math
