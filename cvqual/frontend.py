"""
cvqual/frontend.py
==================

Reference front end: a parsimonious PEG grammar for the C++ subset the
analyzer understands, and a :class:`NodeVisitor` that turns the parse tree
into the unit model of :mod:`cvqual.nodes`.

The subset:

- object, pointer (``T*``, ``const T*``, ``T* const``), reference and
  iterator declarations, with ``=``, ``(..)`` or ``{..}`` initialisers
- class/struct bodies: access specifiers, data members, member functions
  (const-qualified or not, including ``operator`` overloads),
  constructors and destructors, ``static const`` members, enums
- out-of-class member definitions and constant definitions (``C::k``)
- statements: blocks, ``return``, ``if``/``while``/``for`` (flattened into
  blocks, the analysis is flow-insensitive), expression statements
- expressions: assignment, arithmetic/relational operators, ``*``/``&``,
  ``++``/``--``, calls, ``[]``, ``.``/``->``, ``const_cast``/``static_cast``
- function-like ``#define`` (other preprocessor lines are skipped)

``mutable`` is deliberately not part of the subset.
"""

from __future__ import annotations

import logging
import re
from bisect import bisect_right
from typing import Any, List, Optional

from parsimonious.exceptions import IncompleteParseError, ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import Node, NodeVisitor

from cvqual.errors import FrontendError
from cvqual.nodes import (
    AddressOf,
    Assign,
    BinaryOp,
    Block,
    Call,
    ClassConstantDecl,
    ClassDecl,
    ConstantDefinition,
    ConstantForm,
    ConstCast,
    Declarator,
    Deref,
    EnumDecl,
    ExprStmt,
    FreeCall,
    FunctionDecl,
    IncDec,
    Index,
    Literal,
    LiteralKind,
    Loc,
    MacroDef,
    MemberAccess,
    Param,
    ReturnStmt,
    ScopedRef,
    StaticCast,
    ThisRef,
    TypeSpec,
    UnaryOp,
    Unit,
    VarDecl,
    VarRef,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  PART 1 — GRAMMAR
# ═══════════════════════════════════════════════════════════════════

CVQUAL_GRAMMAR = r'''
    # ─────────────────────────────────────────────────────────────
    # Top level
    # ─────────────────────────────────────────────────────────────

    unit                = _ (item _)*
    item                = macro_def / pp_line / using_decl / class_def / class_fwd
                        / enum_def / function_def / ctor_def / var_decl_stmt / statement

    macro_def           = "#" hspace "define" hspace identifier "(" macro_params ")" macro_body
    macro_params        = hspace (identifier hspace ("," hspace identifier hspace)*)?
    macro_body          = ~r"[^\n]*(?:\\\n[^\n]*)*"
    pp_line             = ~r"#[^\n]*(?:\\\n[^\n]*)*"
    using_decl          = ~r"using\b[^;]*;"
    hspace              = ~r"[ \t]*"

    # ─────────────────────────────────────────────────────────────
    # Classes and enums
    # ─────────────────────────────────────────────────────────────

    class_def           = class_key _ identifier _ base_clause? _ "{" _ (member _)* "}" _ ";"
    class_fwd           = class_key _ identifier _ ";"
    class_key           = ~r"(?:class|struct)\b"
    base_clause         = ":" ~r"[^{;]*"
    member              = access_spec / enum_def / static_member / ctor_decl
                        / function_def / var_decl_stmt / empty_stmt
    access_spec         = ~r"(?:public|private|protected)\b" _ ":"
    static_member       = ~r"static\b" _ type_spec _ init_declarators _ ";"

    enum_def            = ~r"enum\b" _ (class_key _)? identifier? _ "{" _ enumerators? _ ","? _ "}" _ ";"
    enumerators         = enumerator (_ "," _ enumerator)*
    enumerator          = identifier _ ("=" _ expr)?

    # ─────────────────────────────────────────────────────────────
    # Functions
    # ─────────────────────────────────────────────────────────────

    function_def        = fn_specs type_spec _ ptr_op? _ function_name _ "(" _ params? _ ")" _ const_kw? _ function_tail
    ctor_def            = fn_scope "~"? identifier _ "(" _ params? _ ")" _ ctor_inits? _ block
    ctor_decl           = fn_specs "~"? identifier _ "(" _ params? _ ")" _ ctor_inits? _ function_tail
    fn_specs            = (fn_spec _)*
    fn_spec             = ~r"(?:inline|virtual|explicit|friend|static)\b"
    function_name       = fn_scope? (operator_id / identifier)
    fn_scope            = ~r"(?:[A-Za-z_]\w*::)+"
    operator_id         = ~r"operator\b" _ op_symbol
    op_symbol           = ~r"\[\]|\(\)|->|\+\+|--|<<=|>>=|<<|>>|<=|>=|==|!=|&&|\|\||[-+*/%&|^]=|[-+*/%<>=!&|^~]"
    function_tail       = block / (pure_spec? _ ";")
    pure_spec           = "=" _ ~r"(?:0|default|delete)\b"
    ctor_inits          = ":" _ mem_init (_ "," _ mem_init)*
    mem_init            = identifier _ "(" _ args? _ ")"

    params              = param (_ "," _ param)*
    param               = type_spec _ ptr_op? _ identifier? _ array_suffix? _ default_arg?
    default_arg         = "=" _ assign_expr

    # ─────────────────────────────────────────────────────────────
    # Declarations
    # ─────────────────────────────────────────────────────────────

    var_decl_stmt       = type_spec _ init_declarators _ ";"
    init_declarators    = init_declarator (_ "," _ init_declarator)*
    init_declarator     = declarator _ initializer?
    initializer         = ("=" !"=" _ assign_expr) / ("(" _ args? _ ")") / ("{" _ args? _ "}")
    declarator          = ptr_op? _ declarator_id _ array_suffix?
    declarator_id       = identifier ("::" identifier)*
    array_suffix        = "[" _ expr? _ "]"
    ptr_op              = pointer_op / ref_op
    pointer_op          = "*" _ const_kw?
    ref_op              = "&" !"&"
    const_kw            = ~r"const\b"

    type_spec           = const_kw? _ type_name (_ const_kw)?
    type_name           = builtin_type / type_ident
    builtin_type        = ~r"(?:(?:unsigned|signed)\s+)?(?:char|short(?:\s+int)?|int|long\s+long(?:\s+int)?|long(?:\s+(?:int|double))?|float|double|bool|void|wchar_t|char16_t|char32_t)\b|(?:unsigned|signed)\b"
    type_ident          = "::"? identifier template_args? ("::" identifier template_args?)*
    template_args       = "<" _ template_arg (_ "," _ template_arg)* _ ">"
    template_arg        = (type_spec _ ptr_op?) / int_lit

    # ─────────────────────────────────────────────────────────────
    # Statements
    # ─────────────────────────────────────────────────────────────

    block               = "{" _ (statement _)* "}"
    statement           = block / return_stmt / if_stmt / while_stmt / for_stmt
                        / var_decl_stmt / expr_stmt / empty_stmt
    return_stmt         = ~r"return\b" _ expr? _ ";"
    if_stmt             = ~r"if\b" _ "(" _ expr _ ")" _ statement (_ ~r"else\b" _ statement)?
    while_stmt          = ~r"while\b" _ "(" _ expr _ ")" _ statement
    for_stmt            = ~r"for\b" _ "(" _ for_init _ expr? _ ";" _ expr? _ ")" _ statement
    for_init            = var_decl_stmt / expr_stmt / empty_stmt
    expr_stmt           = expr _ ";"
    empty_stmt          = ";"

    # ─────────────────────────────────────────────────────────────
    # Expressions (lowest precedence first)
    # ─────────────────────────────────────────────────────────────

    expr                = assign_expr
    assign_expr         = logical_or (_ assign_op _ assign_expr)?
    assign_op           = ~r"(?:<<|>>|[-+*/%&|^])?=(?!=)"
    logical_or          = logical_and (_ "||" _ logical_and)*
    logical_and         = equality (_ "&&" _ equality)*
    equality            = relational (_ eq_op _ relational)*
    eq_op               = "==" / "!="
    relational          = shift (_ rel_op _ shift)*
    rel_op              = ~r"<=|>=|<(?![<=])|>(?![>=])"
    shift               = additive (_ shift_op _ additive)*
    shift_op            = ~r"(?:<<|>>)(?!=)"
    additive            = multiplicative (_ add_op _ multiplicative)*
    add_op              = ~r"[-+](?![-+=])"
    multiplicative      = unary (_ mul_op _ unary)*
    mul_op              = ~r"[*/%](?!=)"

    unary               = prefix_incdec / deref / address_of / unary_op / postfix_expr
    prefix_incdec       = incdec_op _ unary
    deref               = "*" _ unary
    address_of          = "&" !"&" _ unary
    unary_op            = ~r"[-+!~](?![-+=])" _ unary
    incdec_op           = "++" / "--"

    postfix_expr        = primary postfix*
    postfix             = call_suffix / index_suffix / member_suffix / postfix_incdec
    call_suffix         = _ "(" _ args? _ ")"
    index_suffix        = _ "[" _ expr _ "]"
    member_suffix       = _ member_op _ member_name
    member_op           = "->" / "."
    member_name         = operator_id / identifier
    postfix_incdec      = _ incdec_op
    args                = assign_expr (_ "," _ assign_expr)*

    primary             = cast_expr / paren_expr / literal / this_ref / scoped_ref / name_ref
    cast_expr           = cast_kw _ "<" _ type_spec _ ptr_op? _ ">" _ "(" _ expr _ ")"
    cast_kw             = ~r"(?:const_cast|static_cast)\b"
    paren_expr          = "(" _ expr _ ")"
    scoped_ref          = identifier ("::" identifier)+
    name_ref            = identifier !"::"
    this_ref            = ~r"this\b"

    # ─────────────────────────────────────────────────────────────
    # Literals, identifiers, whitespace
    # ─────────────────────────────────────────────────────────────

    literal             = float_lit / int_lit / string_lit / char_lit / bool_lit
    float_lit           = ~r"(?:\d+\.\d*|\.\d+)(?:[eE][-+]?\d+)?[fFlL]?|\d+[eE][-+]?\d+[fFlL]?"
    int_lit             = ~r"(?:0[xX][0-9a-fA-F]+|\d+)[uUlL]*"
    string_lit          = ~r'"(?:[^"\\\n]|\\.)*"'
    char_lit            = ~r"'(?:[^'\\\n]|\\.)+'"
    bool_lit            = ~r"(?:true|false)\b"

    identifier          = !keyword ~r"[A-Za-z_]\w*"
    keyword             = ~r"(?:const_cast|static_cast|const|volatile|mutable|class|struct|union|enum|static|return|public|private|protected|operator|this|true|false|if|else|for|while|do|switch|case|template|typename|typedef|using|namespace|virtual|inline|explicit|friend|new|delete|sizeof|void|bool|char|short|int|long|float|double|unsigned|signed|wchar_t|char16_t|char32_t)\b"
    _                   = ~r"(?:\s|//[^\n]*|/\*.*?\*/)*"s
'''

GRAMMAR = Grammar(CVQUAL_GRAMMAR)


def _opt(value: Any) -> Any:
    """Value of an optional ``x?`` term, or None when it did not match."""
    if isinstance(value, list):
        return value[0] if value else None
    return None


def _many(value: Any) -> List[Any]:
    """Values of a repeated ``x*`` term."""
    return value if isinstance(value, list) else []


def _text(value: Any) -> str:
    return value.text if isinstance(value, Node) else str(value)


def _spell_type(text: str) -> str:
    collapsed = " ".join(text.split())
    return re.sub(
        r"\s*(<|>|::|,)\s*",
        lambda m: ", " if m.group(1) == "," else m.group(1),
        collapsed,
    )


def _statements(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return [v for v in value if v is not None]
    return [value]


# ═══════════════════════════════════════════════════════════════════
#  PART 2 — PARSE TREE → UNIT MODEL
# ═══════════════════════════════════════════════════════════════════

class UnitBuilder(NodeVisitor):
    """Transforms a parsimonious parse tree into a :class:`Unit`."""

    unwrapped_exceptions = (FrontendError, RecursionError)

    def __init__(self, text: str, filename: str = "<unit>"):
        self.text = text
        self.filename = filename
        self._line_starts = [0] + [m.end() for m in re.finditer(r"\n", text)]

    def _loc(self, node: Node) -> Loc:
        line = bisect_right(self._line_starts, node.start)
        return Loc(self.filename, line, node.start - self._line_starts[line - 1] + 1)

    def generic_visit(self, node, visited_children):
        return visited_children or node

    def _first(self, node, visited_children):
        return visited_children[0]

    visit_item = visit_member = visit_statement = visit_for_init = _first
    visit_primary = visit_literal = visit_type_name = visit_ptr_op = _first
    visit_unary = visit_postfix = visit_member_name = _first

    def _fold(self, node, visited_children):
        left, rest = visited_children
        for group in _many(rest):
            _, op, _, right = group
            left = BinaryOp(_text(op), left, right, loc=left.loc)
        return left

    visit_logical_or = visit_logical_and = visit_equality = _fold
    visit_relational = visit_shift = visit_additive = visit_multiplicative = _fold

    def _token(self, node, visited_children):
        return node.text

    visit_identifier = visit_op_symbol = visit_assign_op = _token
    visit_eq_op = visit_rel_op = visit_shift_op = visit_add_op = visit_mul_op = _token
    visit_incdec_op = visit_member_op = visit_class_key = _token

    # ── top level ──────────────────────────────────────────────────

    def visit_unit(self, node, visited_children):
        _, items = visited_children
        unit = Unit(name=self.filename, source=self.text)
        for group in _many(items):
            unit.items.extend(_statements(group[0]))
        return unit

    def visit_macro_def(self, node, visited_children):
        _, _, _, _, name, _, params, _, body = visited_children
        return MacroDef(name=name, params=params, body=body, loc=self._loc(node))

    def visit_macro_params(self, node, visited_children):
        _, names = visited_children
        names = _opt(names)
        if names is None:
            return []
        first, _, rest = names
        return [first] + [g[2] for g in _many(rest)]

    def visit_macro_body(self, node, visited_children):
        return node.text.replace("\\\n", " ").strip()

    def visit_pp_line(self, node, visited_children):
        return None

    visit_using_decl = visit_class_fwd = visit_access_spec = visit_empty_stmt = visit_pp_line

    # ── classes ────────────────────────────────────────────────────

    def visit_class_def(self, node, visited_children):
        key, _, name, _, _, _, _, _, members, _, _, _ = visited_children
        decl = ClassDecl(name=name, key=key, loc=self._loc(node))
        for group in _many(members):
            decl.members.extend(_statements(group[0]))
        return decl

    def visit_static_member(self, node, visited_children):
        _, _, type_spec, _, declarators, _, _ = visited_children
        out: List[Any] = []
        for declarator, init in declarators:
            if type_spec.const:
                out.append(ClassConstantDecl(
                    name=declarator.name,
                    type=type_spec,
                    form=ConstantForm.STATIC_CONST,
                    initializer=init,
                    loc=declarator.loc,
                ))
            else:
                out.append(VarDecl(type_spec, declarator, init, loc=declarator.loc))
        return out

    def visit_enum_def(self, node, visited_children):
        name = _opt(visited_children[3]) or ""
        enumerators = _opt(visited_children[7]) or []
        value_type = TypeSpec(name or "int", const=True, loc=self._loc(node))
        return EnumDecl(
            name=name,
            enumerators=[
                ClassConstantDecl(n, value_type, ConstantForm.ENUMERATOR, init, loc)
                for n, init, loc in enumerators
            ],
            loc=self._loc(node),
        )

    def visit_enumerators(self, node, visited_children):
        first, rest = visited_children
        return [first] + [g[3] for g in _many(rest)]

    def visit_enumerator(self, node, visited_children):
        name, _, value = visited_children
        value = _opt(value)
        return (name, value[2] if value else None, self._loc(node))

    # ── functions ──────────────────────────────────────────────────

    def visit_function_def(self, node, visited_children):
        (_, return_type, _, ptr, _, (scope, name), _, _, _, params, _, _, _,
         const, _, body) = visited_children
        return FunctionDecl(
            name=name,
            return_type=return_type,
            return_declarator=self._declarator_from(_opt(ptr), "", None, self._loc(node)),
            params=self._param_list(params),
            is_const=_opt(const) is not None,
            body=body,
            owner=scope,
            loc=self._loc(node),
        )

    def visit_ctor_def(self, node, visited_children):
        scope, tilde, name, _, _, _, params, _, _, _, _, _, body = visited_children
        return self._constructor(node, scope, tilde, name, params, body)

    def visit_ctor_decl(self, node, visited_children):
        _, tilde, name, _, _, _, params, _, _, _, _, _, body = visited_children
        return self._constructor(node, "", tilde, name, params, body)

    def _constructor(self, node, scope, tilde, name, params, body):
        if _opt(tilde) is not None:
            name = "~" + name
        return FunctionDecl(
            name=name,
            return_type=TypeSpec("void", loc=self._loc(node)),
            params=self._param_list(params),
            body=body,
            owner=scope,
            loc=self._loc(node),
        )

    def _param_list(self, params) -> List[Param]:
        params = _opt(params) or []
        if (
            len(params) == 1
            and params[0].type.name == "void"
            and not params[0].declarator.name
            and not params[0].declarator.pointer
        ):
            return []
        return params

    def visit_function_name(self, node, visited_children):
        scope, name = visited_children
        return _opt(scope) or "", name[0]

    def visit_fn_scope(self, node, visited_children):
        return node.text[:-2]

    def visit_operator_id(self, node, visited_children):
        return "operator" + visited_children[2]

    def visit_function_tail(self, node, visited_children):
        tail = visited_children[0]
        return tail if isinstance(tail, Block) else None

    def visit_params(self, node, visited_children):
        first, rest = visited_children
        return [first] + [g[3] for g in _many(rest)]

    def visit_param(self, node, visited_children):
        type_spec, _, ptr, _, name, _, array, _, _ = visited_children
        ptr = _opt(ptr)
        if _opt(array) is not None:
            ptr = ("*", False)
        declarator = self._declarator_from(ptr, _opt(name) or "", None, self._loc(node))
        return Param(type_spec, declarator, loc=self._loc(node))

    # ── declarations ───────────────────────────────────────────────

    def visit_var_decl_stmt(self, node, visited_children):
        type_spec, _, declarators, _, _ = visited_children
        out: List[Any] = []
        for declarator, init in declarators:
            if declarator.is_scoped:
                out.append(ConstantDefinition(
                    class_name=declarator.scope,
                    name=declarator.unqualified_name,
                    type=type_spec,
                    initializer=init,
                    loc=declarator.loc,
                ))
            else:
                out.append(VarDecl(type_spec, declarator, init, loc=declarator.loc))
        return out

    def visit_init_declarators(self, node, visited_children):
        first, rest = visited_children
        return [first] + [g[3] for g in _many(rest)]

    def visit_init_declarator(self, node, visited_children):
        declarator, _, init = visited_children
        return declarator, _opt(init)

    def visit_initializer(self, node, visited_children):
        group = visited_children[0]
        if group[0].text == "=":
            return group[3]
        args = _opt(group[2]) or []
        # T x(a) / T x{a}: direct initialisation from a single value
        return args[0][0] if len(args) == 1 else None

    def visit_declarator(self, node, visited_children):
        ptr, _, name, _, array = visited_children
        array = _opt(array)
        return self._declarator_from(
            _opt(ptr), name, array[1] if array else None, self._loc(node)
        )

    def visit_declarator_id(self, node, visited_children):
        return "".join(node.text.split())

    def visit_array_suffix(self, node, visited_children):
        return ("array", _opt(visited_children[2]))

    @staticmethod
    def _declarator_from(ptr, name, array_bound, loc) -> Declarator:
        kind, const = ptr if ptr else ("", False)
        return Declarator(
            name=name,
            pointer=kind == "*",
            pointer_const=kind == "*" and const,
            reference=kind == "&",
            array_bound=array_bound,
            loc=loc,
        )

    def visit_pointer_op(self, node, visited_children):
        return ("*", _opt(visited_children[2]) is not None)

    def visit_ref_op(self, node, visited_children):
        return ("&", False)

    def visit_const_kw(self, node, visited_children):
        return True

    def visit_type_spec(self, node, visited_children):
        leading, _, name, trailing = visited_children
        const = _opt(leading) is not None or _opt(trailing) is not None
        return TypeSpec(name=name, const=const, loc=self._loc(node))

    def visit_builtin_type(self, node, visited_children):
        return " ".join(node.text.split())

    def visit_type_ident(self, node, visited_children):
        return _spell_type(node.text)

    # ── statements ─────────────────────────────────────────────────

    def visit_block(self, node, visited_children):
        _, _, statements, _ = visited_children
        block = Block(loc=self._loc(node))
        for group in _many(statements):
            block.statements.extend(_statements(group[0]))
        return block

    def visit_return_stmt(self, node, visited_children):
        return ReturnStmt(_opt(visited_children[2]), loc=self._loc(node))

    def visit_if_stmt(self, node, visited_children):
        cond, then = visited_children[4], visited_children[8]
        otherwise = _opt(visited_children[9])
        body = [ExprStmt(cond, loc=cond.loc)] + _statements(then)
        if otherwise is not None:
            body += _statements(otherwise[3])
        return Block(body, loc=self._loc(node))

    def visit_while_stmt(self, node, visited_children):
        cond, body = visited_children[4], visited_children[8]
        return Block([ExprStmt(cond, loc=cond.loc)] + _statements(body), loc=self._loc(node))

    def visit_for_stmt(self, node, visited_children):
        init = _statements(visited_children[4])
        cond, step = _opt(visited_children[6]), _opt(visited_children[10])
        body = list(init)
        for expr in (cond, step):
            if expr is not None:
                body.append(ExprStmt(expr, loc=expr.loc))
        body += _statements(visited_children[14])
        return Block(body, loc=self._loc(node))

    def visit_expr_stmt(self, node, visited_children):
        return ExprStmt(visited_children[0], loc=self._loc(node))

    # ── expressions ────────────────────────────────────────────────

    def visit_assign_expr(self, node, visited_children):
        target, rest = visited_children
        rest = _opt(rest)
        if rest is None:
            return target
        return Assign(target, rest[3], loc=self._loc(node))

    def visit_prefix_incdec(self, node, visited_children):
        op, _, operand = visited_children
        return IncDec(op, operand, prefix=True, loc=self._loc(node))

    def visit_deref(self, node, visited_children):
        return Deref(visited_children[2], loc=self._loc(node))

    def visit_address_of(self, node, visited_children):
        return AddressOf(visited_children[3], loc=self._loc(node))

    def visit_unary_op(self, node, visited_children):
        op, _, operand = visited_children
        return UnaryOp(op.text, operand, loc=self._loc(node))

    def visit_postfix_expr(self, node, visited_children):
        expr, suffixes = visited_children
        suffixes = _many(suffixes)
        i = 0
        while i < len(suffixes):
            kind, loc, *payload = suffixes[i]
            nxt = suffixes[i + 1] if i + 1 < len(suffixes) else None
            if kind == "member" and nxt is not None and nxt[0] == "call":
                arrow, name = payload
                expr = Call(expr, name, [a for a, _ in nxt[2]], arrow=arrow, loc=loc)
                i += 2
                continue
            if kind == "member":
                arrow, name = payload
                expr = MemberAccess(expr, name, arrow=arrow, loc=loc)
            elif kind == "call":
                (args,) = payload
                if isinstance(expr, VarRef):
                    name = expr.name
                elif isinstance(expr, ScopedRef):
                    name = f"{expr.scope}::{expr.name}"
                else:
                    raise FrontendError("unsupported call expression", location=loc)
                expr = FreeCall(
                    name, [a for a, _ in args], arg_text=tuple(t for _, t in args), loc=expr.loc
                )
            elif kind == "index":
                expr = Index(expr, payload[0], loc=loc)
            else:
                expr = IncDec(payload[0], expr, prefix=False, loc=loc)
            i += 1
        return expr

    def visit_call_suffix(self, node, visited_children):
        return ("call", self._loc(node), _opt(visited_children[3]) or [])

    def visit_index_suffix(self, node, visited_children):
        return ("index", self._loc(node), visited_children[3])

    def visit_member_suffix(self, node, visited_children):
        _, op, _, name = visited_children
        return ("member", self._loc(node), op == "->", name)

    def visit_postfix_incdec(self, node, visited_children):
        return ("incdec", self._loc(node), visited_children[1])

    def visit_args(self, node, visited_children):
        first, rest = visited_children
        texts = [node.children[0].text.strip()]
        texts += [group.children[3].text.strip() for group in node.children[1].children]
        values = [first] + [g[3] for g in _many(rest)]
        return list(zip(values, texts))

    def visit_cast_expr(self, node, visited_children):
        kw = visited_children[0].text
        type_spec, ptr, operand = visited_children[4], _opt(visited_children[6]), visited_children[12]
        declarator = self._declarator_from(ptr, "", None, self._loc(node))
        cls = ConstCast if kw == "const_cast" else StaticCast
        return cls(type_spec, declarator, operand, loc=self._loc(node))

    def visit_paren_expr(self, node, visited_children):
        return visited_children[2]

    def visit_scoped_ref(self, node, visited_children):
        scope, _, name = "".join(node.text.split()).rpartition("::")
        return ScopedRef(scope, name, loc=self._loc(node))

    def visit_name_ref(self, node, visited_children):
        return VarRef(visited_children[0], loc=self._loc(node))

    def visit_this_ref(self, node, visited_children):
        return ThisRef(loc=self._loc(node))

    def _literal(kind: LiteralKind):
        def visit(self, node, visited_children):
            return Literal(node.text, kind, loc=self._loc(node))
        return visit

    visit_float_lit = _literal(LiteralKind.FLOAT)
    visit_int_lit = _literal(LiteralKind.INT)
    visit_string_lit = _literal(LiteralKind.STRING)
    visit_char_lit = _literal(LiteralKind.CHAR)
    visit_bool_lit = _literal(LiteralKind.BOOL)
    del _literal


# ═══════════════════════════════════════════════════════════════════
#  PART 3 — ENTRY POINTS
# ═══════════════════════════════════════════════════════════════════

def _parse_error(exc: ParseError, text: str, filename: str) -> FrontendError:
    snippet = text[exc.pos:exc.pos + 20].split("\n", 1)[0]
    loc = Loc(filename, exc.line(), exc.column())
    if isinstance(exc, IncompleteParseError):
        message = f"cannot parse input starting at {snippet!r}"
    else:
        message = f"syntax error near {snippet!r}"
    return FrontendError(message, location=loc, cause=exc)


def _too_deep(exc: RecursionError, filename: str) -> FrontendError:
    return FrontendError(
        "input is nested too deeply to parse",
        location=Loc(filename, 1, 1),
        cause=exc,
    )


def parse_unit(text: str, filename: str = "<unit>") -> Unit:
    """Parse C++ source text into a :class:`Unit`.

    Raises :class:`FrontendError` when the text is outside the subset,
    including input nested deeper than the parser's recursion allows.
    """
    try:
        tree = GRAMMAR.parse(text)
        unit = UnitBuilder(text, filename).visit(tree)
    except ParseError as exc:
        raise _parse_error(exc, text, filename) from exc
    except VisitationError as exc:
        raise FrontendError(f"cannot build unit: {exc}", cause=exc) from exc
    except RecursionError as exc:
        raise _too_deep(exc, filename) from None
    logger.debug("%s: parsed %d item(s)", filename, len(unit.items))
    return unit


def parse_expression(text: str, filename: str = "<expr>"):
    """Parse a single expression (used by tests and the REPL-style tools)."""
    text = text.strip()
    try:
        tree = GRAMMAR["expr"].parse(text)
        return UnitBuilder(text, filename).visit(tree)
    except ParseError as exc:
        raise _parse_error(exc, text, filename) from exc
    except RecursionError as exc:
        raise _too_deep(exc, filename) from None
