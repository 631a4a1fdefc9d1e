# cvqual/nodes.py
"""
Input unit model for the qualification analyzer.

A unit is the structured form of one C++ translation fragment: object,
pointer, reference and iterator declarations, class bodies with member
functions and class-scope constants, out-of-class definitions, usage
statements, and function-like macro definitions.  The reference front end
(:mod:`cvqual.frontend`) produces these nodes; any other front end may
build them directly.

Every node carries source location information for diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Iterator, List, Optional, Tuple, Union


# ── Source Location ──────────────────────────────────────────────

@dataclass(frozen=True)
class Loc:
    """Source location for diagnostics."""
    file: str = "<unit>"
    line: int = 0
    col: int = 0

    def __str__(self):
        return f"{self.file}:{self.line}:{self.col}"


# ── Enums ────────────────────────────────────────────────────────

class ConstantForm(Enum):
    STATIC_CONST = "static-const"
    ENUMERATOR = "enumerator"


class LiteralKind(Enum):
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    CHAR = "char"
    BOOL = "bool"


# ── Type Specifiers & Declarators ────────────────────────────────

@dataclass
class TypeSpec:
    """Base type plus its own ``const`` (``const int`` / ``int const``)."""
    name: str
    const: bool = False
    loc: Loc = field(default_factory=Loc)

    def __str__(self):
        return f"const {self.name}" if self.const else self.name


@dataclass
class Declarator:
    """The part after the type: ``* const p``, ``&r``, ``arr[N]``."""
    name: str = ""
    pointer: bool = False
    pointer_const: bool = False
    reference: bool = False
    array_bound: Optional[Expr] = None
    loc: Loc = field(default_factory=Loc)

    @property
    def is_scoped(self) -> bool:
        return "::" in self.name

    @property
    def scope(self) -> str:
        return self.name.rsplit("::", 1)[0] if self.is_scoped else ""

    @property
    def unqualified_name(self) -> str:
        return self.name.rsplit("::", 1)[-1]


# ── Expressions ──────────────────────────────────────────────────

@dataclass
class Literal:
    text: str
    kind: LiteralKind = LiteralKind.INT
    loc: Loc = field(default_factory=Loc)


@dataclass
class VarRef:
    name: str
    loc: Loc = field(default_factory=Loc)


@dataclass
class ScopedRef:
    """``Class::name``."""
    scope: str
    name: str
    loc: Loc = field(default_factory=Loc)


@dataclass
class ThisRef:
    loc: Loc = field(default_factory=Loc)


@dataclass
class Deref:
    operand: Expr
    loc: Loc = field(default_factory=Loc)


@dataclass
class AddressOf:
    operand: Expr
    loc: Loc = field(default_factory=Loc)


@dataclass
class MemberAccess:
    obj: Expr
    member: str
    arrow: bool = False
    loc: Loc = field(default_factory=Loc)


@dataclass
class Index:
    base: Expr
    index: Expr
    loc: Loc = field(default_factory=Loc)


@dataclass
class Call:
    """Member call ``obj.method(args)`` or ``ptr->method(args)``."""
    obj: Expr
    method: str
    args: List[Expr] = field(default_factory=list)
    arrow: bool = False
    loc: Loc = field(default_factory=Loc)


@dataclass
class FreeCall:
    """Unqualified call ``name(args)``; may name a macro or a member."""
    name: str
    args: List[Expr] = field(default_factory=list)
    arg_text: Tuple[str, ...] = ()
    loc: Loc = field(default_factory=Loc)


@dataclass
class BinaryOp:
    op: str
    left: Expr
    right: Expr
    loc: Loc = field(default_factory=Loc)


@dataclass
class UnaryOp:
    """Builtin prefix ``-x``, ``+x``, ``!x``, ``~x``."""
    op: str
    operand: Expr
    loc: Loc = field(default_factory=Loc)


@dataclass
class IncDec:
    op: str
    operand: Expr
    prefix: bool = True
    loc: Loc = field(default_factory=Loc)


@dataclass
class Assign:
    target: Expr
    value: Expr
    loc: Loc = field(default_factory=Loc)


@dataclass
class ConstCast:
    """``const_cast<T&>(e)``: the only qualifier-stripping expression."""
    type: TypeSpec
    declarator: Declarator
    operand: Expr
    loc: Loc = field(default_factory=Loc)


@dataclass
class StaticCast:
    type: TypeSpec
    declarator: Declarator
    operand: Expr
    loc: Loc = field(default_factory=Loc)


@dataclass
class MacroInvocation:
    name: str
    args: Tuple[str, ...] = ()
    arg_exprs: List[Expr] = field(default_factory=list)
    loc: Loc = field(default_factory=Loc)


Expr = Union[
    Literal, VarRef, ScopedRef, ThisRef, Deref, AddressOf, MemberAccess,
    Index, Call, FreeCall, BinaryOp, UnaryOp, IncDec, Assign, ConstCast, StaticCast,
    MacroInvocation,
]


# ── Statements ───────────────────────────────────────────────────

@dataclass
class VarDecl:
    """Object, pointer, reference or iterator declaration."""
    type: TypeSpec
    declarator: Declarator
    init: Optional[Expr] = None
    loc: Loc = field(default_factory=Loc)

    @property
    def name(self) -> str:
        return self.declarator.name


@dataclass
class ExprStmt:
    expr: Expr
    loc: Loc = field(default_factory=Loc)


@dataclass
class ReturnStmt:
    value: Optional[Expr] = None
    loc: Loc = field(default_factory=Loc)


@dataclass
class Block:
    statements: List[Statement] = field(default_factory=list)
    loc: Loc = field(default_factory=Loc)


Statement = Union[VarDecl, ExprStmt, ReturnStmt, Block]


# ── Declarations ─────────────────────────────────────────────────

@dataclass
class Param:
    type: TypeSpec
    declarator: Declarator = field(default_factory=Declarator)
    loc: Loc = field(default_factory=Loc)


@dataclass
class FunctionDecl:
    """Free or member function; ``owner`` is set for ``C::f`` definitions."""
    name: str
    return_type: TypeSpec
    return_declarator: Declarator = field(default_factory=Declarator)
    params: List[Param] = field(default_factory=list)
    is_const: bool = False
    body: Optional[Block] = None
    owner: str = ""
    loc: Loc = field(default_factory=Loc)

    @property
    def param_types(self) -> Tuple[str, ...]:
        return tuple(p.type.name for p in self.params)


@dataclass
class ClassConstantDecl:
    """``static const T name [= value];`` or an enumerator in a class."""
    name: str
    type: TypeSpec
    form: ConstantForm = ConstantForm.STATIC_CONST
    initializer: Optional[Expr] = None
    loc: Loc = field(default_factory=Loc)


@dataclass
class EnumDecl:
    name: str = ""
    enumerators: List[ClassConstantDecl] = field(default_factory=list)
    loc: Loc = field(default_factory=Loc)


@dataclass
class ClassDecl:
    name: str
    members: List[Union[VarDecl, FunctionDecl, ClassConstantDecl, EnumDecl]] = field(
        default_factory=list
    )
    key: str = "class"
    loc: Loc = field(default_factory=Loc)


@dataclass
class ConstantDefinition:
    """Out-of-class definition ``const int C::k [= v];``."""
    class_name: str
    name: str
    type: TypeSpec
    initializer: Optional[Expr] = None
    loc: Loc = field(default_factory=Loc)


@dataclass
class MacroDef:
    """Function-like ``#define NAME(params) body``."""
    name: str
    params: List[str] = field(default_factory=list)
    body: str = ""
    loc: Loc = field(default_factory=Loc)


Item = Union[
    ClassDecl, FunctionDecl, VarDecl, ConstantDefinition, EnumDecl,
    MacroDef, ExprStmt, ReturnStmt, Block,
]


@dataclass
class Unit:
    """One analysis unit (a file or an in-memory fragment)."""
    name: str = "<unit>"
    items: List[Item] = field(default_factory=list)
    source: str = ""

    def classes(self) -> List[ClassDecl]:
        return [i for i in self.items if isinstance(i, ClassDecl)]

    def macros(self) -> List[MacroDef]:
        return [i for i in self.items if isinstance(i, MacroDef)]


# ── Traversal ────────────────────────────────────────────────────

_EXPR_TYPES = (
    Literal, VarRef, ScopedRef, ThisRef, Deref, AddressOf, MemberAccess,
    Index, Call, FreeCall, BinaryOp, UnaryOp, IncDec, Assign, ConstCast, StaticCast,
    MacroInvocation,
)


def is_expr(obj: object) -> bool:
    return isinstance(obj, _EXPR_TYPES)


def child_exprs(expr: Expr) -> Iterator[Expr]:
    """Direct sub-expressions of *expr*, in field order."""
    for f in fields(expr):
        value = getattr(expr, f.name)
        if is_expr(value):
            yield value
        elif isinstance(value, list):
            for v in value:
                if is_expr(v):
                    yield v


def walk(expr: Expr) -> Iterator[Expr]:
    """Pre-order traversal of an expression tree."""
    stack = [expr]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(list(child_exprs(node))))


def is_node(obj: object) -> bool:
    return is_dataclass(obj) and not isinstance(obj, type) and not isinstance(obj, Loc)
