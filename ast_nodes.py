"""
Tally abstract syntax tree
Frozen node dataclasses built bottom-up by the parser, plus structural queries
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple, TYPE_CHECKING
from dataclasses import dataclass

if TYPE_CHECKING:
    from parsing import SourcePosition, Token


class Node:
    """Base class for all AST nodes"""

    @property
    def start(self) -> 'SourcePosition':
        raise NotImplementedError

    @property
    def end(self) -> 'SourcePosition':
        raise NotImplementedError


def _earliest(*positions: 'SourcePosition') -> 'SourcePosition':
    return min(positions, key=lambda p: p.offset)


def _latest(*positions: 'SourcePosition') -> 'SourcePosition':
    return max(positions, key=lambda p: p.offset)


@dataclass
class LiteralCell:
    """Mutable text of a string literal; index assignment on a literal rewrites it"""
    text: str


@dataclass(frozen=True)
class NumberLiteral(Node):
    token: 'Token'

    @property
    def text(self) -> str:
        return self.token.text

    @property
    def start(self):
        return self.token.start

    @property
    def end(self):
        return self.token.end


@dataclass(frozen=True)
class StringLiteral(Node):
    token: 'Token'
    cell: LiteralCell

    @property
    def text(self) -> str:
        return self.cell.text

    @property
    def start(self):
        return self.token.start

    @property
    def end(self):
        return self.token.end


@dataclass(frozen=True)
class Identifier(Node):
    token: 'Token'

    @property
    def name(self) -> str:
        return self.token.text

    @property
    def start(self):
        return self.token.start

    @property
    def end(self):
        return self.token.end


@dataclass(frozen=True)
class BinaryOp(Node):
    left: Node
    operator: 'Token'
    right: Node

    @property
    def start(self):
        return self.left.start

    @property
    def end(self):
        return self.right.end


@dataclass(frozen=True)
class UnaryOp(Node):
    operator: 'Token'
    operand: Node

    # the operator trails its operand when desugared from x++ / x--
    @property
    def start(self):
        return _earliest(self.operator.start, self.operand.start)

    @property
    def end(self):
        return _latest(self.operator.end, self.operand.end)


@dataclass(frozen=True)
class Assignment(Node):
    target: Node
    value: Node
    postfix: bool = False

    @property
    def start(self):
        return self.target.start

    @property
    def end(self):
        return self.value.end


@dataclass(frozen=True)
class Call(Node):
    callee: Node
    arguments: Tuple[Node, ...]
    close: 'Token'

    @property
    def start(self):
        return self.callee.start

    @property
    def end(self):
        return self.close.end


@dataclass(frozen=True)
class Index(Node):
    container: Node
    index: Node
    close: 'Token'

    @property
    def start(self):
        return self.container.start

    @property
    def end(self):
        return self.close.end


@dataclass(frozen=True)
class Block(Node):
    open: 'Token'
    statements: Tuple[Node, ...]
    close: 'Token'

    @property
    def start(self):
        return self.open.start

    @property
    def end(self):
        return self.close.end


@dataclass(frozen=True)
class If(Node):
    keyword: 'Token'
    cases: Tuple[Tuple[Node, Optional[Node]], ...]
    else_body: Optional[Node] = None

    @property
    def start(self):
        return self.keyword.start

    @property
    def end(self):
        if self.else_body is not None:
            return self.else_body.end
        condition, body = self.cases[-1]
        return body.end if body is not None else condition.end


@dataclass(frozen=True)
class For(Node):
    keyword: 'Token'
    init: Node
    condition: Node
    increment: Node
    body: Optional[Node]

    @property
    def start(self):
        return self.keyword.start

    @property
    def end(self):
        return self.body.end if self.body is not None else self.increment.end


@dataclass(frozen=True)
class FunctionDef(Node):
    keyword: 'Token'
    name_token: 'Token'
    parameters: Tuple[str, ...]
    body: Tuple[Node, ...]
    close: 'Token'

    @property
    def name(self) -> str:
        return self.name_token.text

    @property
    def start(self):
        return self.keyword.start

    @property
    def end(self):
        return self.close.end


# ============================================================================
# STRUCTURAL QUERIES
# ============================================================================

def iter_children(node: Node) -> Iterator[Node]:
    """Direct child nodes in source order"""
    if isinstance(node, BinaryOp):
        yield node.left
        yield node.right
    elif isinstance(node, UnaryOp):
        yield node.operand
    elif isinstance(node, Assignment):
        yield node.target
        yield node.value
    elif isinstance(node, Call):
        yield node.callee
        yield from node.arguments
    elif isinstance(node, Index):
        yield node.container
        yield node.index
    elif isinstance(node, (Block, FunctionDef)):
        body = node.statements if isinstance(node, Block) else node.body
        yield from body
    elif isinstance(node, If):
        for condition, body in node.cases:
            yield condition
            if body is not None:
                yield body
        if node.else_body is not None:
            yield node.else_body
    elif isinstance(node, For):
        yield node.init
        yield node.condition
        yield node.increment
        if node.body is not None:
            yield node.body


def find_nodes_by_type(node: Node, node_type: type) -> List[Node]:
    """All nodes of a given class in the tree, in pre-order"""
    result = []

    def search(current: Node):
        if isinstance(current, node_type):
            result.append(current)
        for child in iter_children(current):
            search(child)

    search(node)
    return result


def _label(node: Node) -> str:
    if isinstance(node, NumberLiteral):
        return f"NumberLiteral({node.text})"
    if isinstance(node, StringLiteral):
        return f"StringLiteral({node.text!r})"
    if isinstance(node, Identifier):
        return f"Identifier({node.name})"
    if isinstance(node, (BinaryOp, UnaryOp)):
        return f"{type(node).__name__}({node.operator.text})"
    if isinstance(node, Assignment) and node.postfix:
        return "Assignment(postfix)"
    if isinstance(node, FunctionDef):
        return f"FunctionDef({node.name}, [{', '.join(node.parameters)}])"
    return type(node).__name__


def pretty_print_ast(node: Node, indent: int = 0) -> str:
    """Indented tree view of a node, for debugging"""
    result = "  " * indent + _label(node)
    for child in iter_children(node):
        result += "\n" + pretty_print_ast(child, indent + 1)
    return result


def _position_dict(position: 'SourcePosition') -> Dict[str, Any]:
    return {
        "source": position.source_name,
        "offset": position.offset,
        "line": position.line,
        "column": position.column,
    }


def ast_to_dict(node: Optional[Node], include_positions: bool = True) -> Optional[Dict[str, Any]]:
    """Convert a tree to nested dictionaries; without positions two parses compare structurally"""
    if node is None:
        return None

    result: Dict[str, Any] = {"type": type(node).__name__}

    if isinstance(node, (NumberLiteral, StringLiteral)):
        result["value"] = node.text
    elif isinstance(node, Identifier):
        result["name"] = node.name
    elif isinstance(node, (BinaryOp, UnaryOp)):
        result["operator"] = node.operator.text
    elif isinstance(node, Assignment):
        result["postfix"] = node.postfix
    elif isinstance(node, FunctionDef):
        result["name"] = node.name
        result["parameters"] = list(node.parameters)
    elif isinstance(node, If):
        result["cases"] = [
            [ast_to_dict(condition, include_positions), ast_to_dict(body, include_positions)]
            for condition, body in node.cases
        ]
        result["else"] = ast_to_dict(node.else_body, include_positions)

    if not isinstance(node, If):
        result["children"] = [ast_to_dict(child, include_positions) for child in iter_children(node)]

    if include_positions:
        result["start"] = _position_dict(node.start)
        result["end"] = _position_dict(node.end)

    return result
