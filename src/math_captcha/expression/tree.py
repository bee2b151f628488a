"""
Module: expression.tree

Purpose:
    Immutable expression representation. The generator produces a
    post-order token stack; this module decodes it once into a tree of
    LiteralNode / OperatorNode values that evaluation and rendering
    both read without consuming anything.

Key Classes:
    - LiteralNode: Numeric leaf
    - OperatorNode: Operator applied to a tuple of operand nodes
    - Expression: Token stack plus the decoded tree

Key Functions:
    - consumption_balance(): Net operand count of a token stack
    - precedence_of(): 0 for literals, operator precedence otherwise

Dependencies:
    - dataclasses (std)
    - expression.operators.Operator

Used By:
    - expression.generator, expression.evaluator, expression.renderer
    - models.CaptchaRecord
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

from .operators import Operator


@dataclass(frozen=True, slots=True)
class LiteralNode:
    """Numeric leaf of an expression tree."""

    value: float


@dataclass(frozen=True, slots=True)
class OperatorNode:
    """
    An operator applied to its operands.

    Operands are stored in pop order: operands[0] is the subtree that
    sat nearest the end of the token stack and fills the template's $1.
    """

    operator: Operator
    operands: Tuple["Node", ...]

    def __post_init__(self) -> None:
        if len(self.operands) != self.operator.arity:
            raise ValueError(
                f"{self.operator!r} needs {self.operator.arity} operands, "
                f"got {len(self.operands)}"
            )


Node = Union[LiteralNode, OperatorNode]
Token = Union[LiteralNode, Operator]


def precedence_of(node: Node) -> int:
    """Precedence of a subtree root. Literals are 0 and never grouped."""
    if isinstance(node, OperatorNode):
        return node.operator.precedence
    return 0


def consumption_balance(tokens: Sequence[Token]) -> int:
    """
    Count values left after reducing a post-order token stack.

    Reads left to right, pushing one slot per literal and replacing
    `arity` slots with one per operator. A well-formed stack returns 1.

    Raises:
        ValueError: If an operator finds fewer pending operands than its arity.
    """
    pending = 0
    for position, token in enumerate(tokens):
        if isinstance(token, Operator):
            if pending < token.arity:
                raise ValueError(
                    f"Stack underflow at token {position}: {token!r} needs "
                    f"{token.arity} operands, {pending} pending"
                )
            pending -= token.arity - 1
        else:
            pending += 1
    return pending


def _decode(stack: List[Token]) -> Node:
    token = stack.pop()
    if isinstance(token, Operator):
        operands = tuple(_decode(stack) for _ in range(token.arity))
        return OperatorNode(token, operands)
    return token


@dataclass(frozen=True)
class Expression:
    """
    A generated expression.

    Attributes:
        tokens: Post-order token stack as produced by the generator
        root: Tree decoded from `tokens` by popping from the end

    Example:
        >>> add = Operator(5, True, True, "$1 + $2", 2, lambda a, b: a + b)
        >>> expr = Expression.from_tokens([LiteralNode(2), LiteralNode(3), add])
        >>> expr.root.operands
        (LiteralNode(value=3), LiteralNode(value=2))
    """

    tokens: Tuple[Token, ...]
    root: Node

    @classmethod
    def from_tokens(cls, tokens: Sequence[Token]) -> Expression:
        """
        Decode a post-order token stack.

        Raises:
            ValueError: If the stack does not reduce to exactly one value.
        """
        balance = consumption_balance(tokens)
        if balance != 1:
            raise ValueError(f"Token stack reduces to {balance} values, expected 1")
        stack = list(tokens)
        root = _decode(stack)
        return cls(tokens=tuple(tokens), root=root)

    @classmethod
    def from_node(cls, root: Node) -> Expression:
        """Wrap a hand-built tree, deriving the matching token stack."""
        tokens: List[Token] = []

        def _emit(node: Node) -> None:
            if isinstance(node, OperatorNode):
                # operands[0] must end up nearest the operator
                for operand in reversed(node.operands):
                    _emit(operand)
                tokens.append(node.operator)
            else:
                tokens.append(node)

        _emit(root)
        return cls(tokens=tuple(tokens), root=root)

    @property
    def operator_count(self) -> int:
        return sum(1 for token in self.tokens if isinstance(token, Operator))
