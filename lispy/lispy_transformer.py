"""
Transforms the raw parser AST into a tree of Lispy values.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

from lispy.lispy_datatypes import Value, Number, Error, Symbol, SExpr, QExpr, Expr

# Number literals must fit in a signed 64-bit integer.
NUMBER_MIN = -(2 ** 63)
NUMBER_MAX = 2 ** 63 - 1

DELIMITERS = ('(', ')', '{', '}')
SYNTAX_TAGS = ('literal', 'regex')


@dataclass
class ParseNode:
    """A generic parse-tree node: grammar tag, matched text and child nodes."""
    tag: str
    text: str = ""
    children: List['ParseNode'] = field(default_factory=list)
    line: Optional[int] = None
    col: Optional[int] = None

    @classmethod
    def from_dict(cls, node: dict) -> 'ParseNode':
        """Builds a ParseNode tree from koine's `{tag, text, children}` dicts."""
        if 'ast' in node and 'tag' not in node:
            node = node['ast']
        children = node.get('children') or []
        return cls(
            tag=node.get('tag', ''),
            text=node.get('text') or "",
            children=[cls.from_dict(c) for c in children if isinstance(c, dict)],
            line=node.get('line'),
            col=node.get('col'),
        )


class LispyTransformer:
    def transform(self, node: Union[ParseNode, dict]) -> Value:
        if isinstance(node, dict):
            node = ParseNode.from_dict(node)

        match node.tag:
            # Atomics
            case 'number':
                return self._read_number(node.text)
            case 'symbol':
                return Symbol(node.text)

            # Structural containers
            case 'lispy' | 'sexpr':
                return self._read_children(SExpr(), node)
            case 'qexpr':
                return self._read_children(QExpr(), node)

            case _:
                raise NotImplementedError(f"No transformer for tag '{node.tag}'")

    def _read_number(self, text: str) -> Value:
        try:
            num = int(text, 10)
        except ValueError:
            return Error("invalid number", kind='bad-num')
        if not NUMBER_MIN <= num <= NUMBER_MAX:
            return Error("invalid number", kind='bad-num')
        return Number(num)

    def _read_children(self, x: Expr, node: ParseNode) -> Expr:
        for child in node.children:
            if child.text in DELIMITERS or child.tag in SYNTAX_TAGS:
                continue
            x.add(self.transform(child))
        return x
