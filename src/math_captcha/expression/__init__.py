"""
Module: expression

Purpose:
    Expression engine: operator registry, random generation, evaluation
    and LaTeX rendering of immutable operator trees.

Key Functions:
    - generate_expression(): Random well-formed expression
    - evaluate(): Numeric answer
    - render(): LaTeX math string
    - wrap_latex(): Standalone LaTeX document

Key Classes:
    - Operator, OperatorRegistry
    - Expression, LiteralNode, OperatorNode

Used By:
    - math_captcha.manager
"""

from .operators import Operator, OperatorRegistry, default_operators
from .tree import Expression, LiteralNode, OperatorNode, consumption_balance
from .generator import generate_expression
from .evaluator import evaluate
from .renderer import render, wrap_latex

__all__ = [
    "Operator",
    "OperatorRegistry",
    "default_operators",
    "Expression",
    "LiteralNode",
    "OperatorNode",
    "consumption_balance",
    "generate_expression",
    "evaluate",
    "render",
    "wrap_latex",
]
