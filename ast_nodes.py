"""
EX abstract syntax tree
Statement and expression nodes produced by the parser and walked by the interpreter
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple


@dataclass(frozen=True)
class SourceSpan:
    """Source location information"""
    filename: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    text: str = ""

    def __str__(self) -> str:
        if self.start_line == self.end_line:
            return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_col}"
        return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_line}:{self.end_col}"


def span_field():
    return field(default=None, compare=False, repr=False)


# ============================================================================
# EXPRESSIONS
# ============================================================================

@dataclass(frozen=True)
class Literal:
    value: Any
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class Grouping:
    expression: Any
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class MacroCall:
    """Already expanded macro: expressions run for effect, then the body"""
    expressions: List[Any]
    body: List[Any]
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class Array:
    elements: List[Any]
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class Axis:
    elements: List[Any]
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class Access:
    """Accessor chain applied left to right: root[a][b]..."""
    root: Any
    accessors: List[Any]
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class Dictionary:
    pairs: List[Tuple[Any, Any]]
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class Iterable:
    """Integer range precomputed by the parser"""
    values: Tuple[int, ...]
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class Unary:
    operator: str
    right: Any
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class Binary:
    left: Any
    operator: str
    right: Any
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class AllocateVariable:
    name: str
    value: Any
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class IndexAssign:
    """target[i][j] = value, where target is a variable"""
    name: str
    accessors: List[Any]
    value: Any
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class Variable:
    name: str
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class Print:
    expression: Any
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class FunctionCall:
    function: str
    args: List[Tuple[str, Any]]
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class StructInstantiation:
    struct_name: str
    method_name: str
    args: List[Any]
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class MemberAccess:
    object: Any
    member: str
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class MemberAssign:
    object: Any
    member: str
    value: Any
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class MethodCall:
    object: Any
    method: str
    args: List[Any]
    span: Optional[SourceSpan] = span_field()


# ============================================================================
# STATEMENTS
# ============================================================================

@dataclass(frozen=True)
class Expression:
    expression: Any
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class SmartLock:
    variable: str
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class SmartUnlock:
    variable: str
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class SmartKill:
    variable: str
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class SmartRevive:
    variable: str
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class SmartConst:
    variable: str
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class If:
    condition: Any
    then_branch: List[Any]
    elif_branches: List[Tuple[Any, List[Any]]] = field(default_factory=list)
    else_branch: Optional[List[Any]] = None
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class LabelDecl:
    """One declaration inside a label statement; `callable` is fixed at parse time"""
    name: str
    callable: bool
    params: List[str] = field(default_factory=list)
    internal_names: List[str] = field(default_factory=list)
    visible_blocks: List[str] = field(default_factory=list)
    body: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class Label:
    labels: List[LabelDecl]
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class Jump:
    target: str
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class Pass:
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class For:
    iterator: str
    iterable: Any
    body: List[Any]
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class While:
    condition: Any
    body: List[Any]
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class DoWhile:
    body: List[Any]
    condition: Any
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class Visible:
    name: str
    definitions: List[Tuple[str, Any]]
    span: Optional[SourceSpan] = span_field()


@dataclass(frozen=True)
class MethodDecl:
    name: str
    params: List[str]
    body: List[Any]


@dataclass(frozen=True)
class StructDef:
    name: str
    methods: List[MethodDecl]
    span: Optional[SourceSpan] = span_field()


def node_name(node: Any) -> str:
    return type(node).__name__


def pretty_print_ast(node: Any, indent: int = 0) -> str:
    """Render a node tree one node per line for --parse and :parse"""
    pad = "  " * indent
    if isinstance(node, (list, tuple)):
        return "".join(pretty_print_ast(item, indent) for item in node)
    if not hasattr(node, "__dataclass_fields__"):
        return f"{pad}{node!r}\n"

    scalars = []
    children = []
    for name in node.__dataclass_fields__:
        if name == "span":
            continue
        value = getattr(node, name)
        if _is_node(value) or (isinstance(value, (list, tuple)) and any(_is_node(v) or isinstance(v, tuple) for v in value)):
            children.append((name, value))
        else:
            scalars.append(f"{name}={value!r}")

    result = f"{pad}{node_name(node)}"
    if scalars:
        result += f"({', '.join(scalars)})"
    result += "\n"
    for name, value in children:
        result += f"{pad}  {name}:\n"
        result += pretty_print_ast(value, indent + 2)
    return result


def _is_node(value: Any) -> bool:
    return hasattr(value, "__dataclass_fields__") and type(value).__module__ == __name__
