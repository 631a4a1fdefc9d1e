"""
Expression evaluator.

Computes, for every node of an expression tree, its qualifier and whether
it is a modifiable lvalue, and reports the diagnostics that fall out of
those facts:

- assignment or increment of a non-modifiable target -> NonModifiableTarget
- a binding, argument, return or ``static_cast`` that would drop const
  -> ConstViolation
- a call that cannot be bound, or a name that cannot be found -> the
  resolver's verdict (ConstViolation or NoViableOverload)

The result of :meth:`ExpressionEvaluator.evaluate` is an
:class:`Annotation` tree mirroring the input.  A node that produced a
diagnostic is *poisoned*; its ancestors are poisoned too and report
nothing further, so one mistake yields one diagnostic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from cvqual.declarations import (
    DeclarationTable,
    DeclEntity,
    EntityKind,
    Scope,
    normalize_type,
)
from cvqual.errors import DiagnosticCollector, DiagnosticKind, ErrorNote
from cvqual.macros import MacroRule
from cvqual.nodes import (
    AddressOf,
    Assign,
    BinaryOp,
    Call,
    ConstCast,
    Deref,
    Expr,
    FreeCall,
    IncDec,
    Index,
    Literal,
    LiteralKind,
    Loc,
    MacroInvocation,
    MemberAccess,
    ScopedRef,
    StaticCast,
    ThisRef,
    UnaryOp,
    VarRef,
)
from cvqual.overloads import (
    NUMERIC_LITERAL,
    OverloadResolver,
    Resolution,
    arg_spelling,
    param_qualifier,
)
from cvqual.qualifiers import (
    Qualifier,
    add_const,
    address_of,
    can_assign_through,
    can_bind,
    strictest,
    strip_const,
)

logger = logging.getLogger(__name__)

_RELATIONAL = frozenset({"<", ">", "<=", ">=", "==", "!=", "&&", "||"})

# call-site spelling of numeric literals
_LITERAL_TYPES = {LiteralKind.INT: "int", LiteralKind.FLOAT: "double"}


# ═══════════════════════════════════════════════════════════════════
#  Annotation tree
# ═══════════════════════════════════════════════════════════════════

@dataclass
class Annotation:
    """Resolved facts for one expression node."""
    node: Expr
    qualifier: Qualifier
    is_modifiable_lvalue: bool = False
    is_lvalue: bool = False
    type_name: str = ""
    entity: Optional[DeclEntity] = None
    resolution: Optional[Resolution] = None
    stripped: bool = False
    poisoned: bool = False
    children: List["Annotation"] = field(default_factory=list)

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class EvaluationContext:
    """Where an expression is evaluated."""
    scope: Scope
    class_name: Optional[str] = None
    this_const: bool = False
    function: Optional[DeclEntity] = None


def render(expr: Expr) -> str:
    """Compact C++ spelling of *expr* for messages."""
    if isinstance(expr, Literal):
        return expr.text
    if isinstance(expr, VarRef):
        return expr.name
    if isinstance(expr, ScopedRef):
        return f"{expr.scope}::{expr.name}"
    if isinstance(expr, ThisRef):
        return "this"
    if isinstance(expr, Deref):
        return f"*{render(expr.operand)}"
    if isinstance(expr, AddressOf):
        return f"&{render(expr.operand)}"
    if isinstance(expr, MemberAccess):
        return f"{render(expr.obj)}{'->' if expr.arrow else '.'}{expr.member}"
    if isinstance(expr, Index):
        return f"{render(expr.base)}[{render(expr.index)}]"
    if isinstance(expr, Call):
        args = ", ".join(render(a) for a in expr.args)
        return f"{render(expr.obj)}{'->' if expr.arrow else '.'}{expr.method}({args})"
    if isinstance(expr, FreeCall):
        return f"{expr.name}({', '.join(render(a) for a in expr.args)})"
    if isinstance(expr, MacroInvocation):
        return f"{expr.name}({', '.join(expr.args)})"
    if isinstance(expr, BinaryOp):
        return f"({render(expr.left)} {expr.op} {render(expr.right)})"
    if isinstance(expr, UnaryOp):
        return f"{expr.op}{render(expr.operand)}"
    if isinstance(expr, IncDec):
        operand = render(expr.operand)
        return f"{expr.op}{operand}" if expr.prefix else f"{operand}{expr.op}"
    if isinstance(expr, Assign):
        return f"{render(expr.target)} = {render(expr.value)}"
    if isinstance(expr, (ConstCast, StaticCast)):
        cast = "const_cast" if isinstance(expr, ConstCast) else "static_cast"
        t = f"{'const ' if expr.type.const else ''}{expr.type.name}"
        if expr.declarator.pointer:
            t += "*"
        elif expr.declarator.reference:
            t += "&"
        return f"{cast}<{t}>({render(expr.operand)})"
    return type(expr).__name__


# ═══════════════════════════════════════════════════════════════════
#  Evaluator
# ═══════════════════════════════════════════════════════════════════

class ExpressionEvaluator:
    """
    Evaluates expressions against a :class:`DeclarationTable`.

    Usage::

        ev = ExpressionEvaluator(table, collector)
        ann = ev.evaluate(expr, EvaluationContext(table.global_scope))
        ann.is_modifiable_lvalue
    """

    def __init__(
        self,
        table: DeclarationTable,
        collector: DiagnosticCollector,
        *,
        resolver: Optional[OverloadResolver] = None,
        macros: Optional[Dict[str, MacroRule]] = None,
        max_depth: int = 256,
    ) -> None:
        self.table = table
        self.collector = collector
        self.resolver = resolver or OverloadResolver()
        self.macros = macros if macros is not None else {}
        self.max_depth = max_depth
        self.invocations: List[Tuple[MacroInvocation, MacroRule]] = []
        self.strips: List[Annotation] = []
        self._depth = 0

    # ── entry point ────────────────────────────────────────────────

    def evaluate(self, expr: Expr, ctx: EvaluationContext) -> Annotation:
        self._depth += 1
        try:
            if self._depth > self.max_depth:
                return self._fail(
                    expr, DiagnosticKind.NO_VIABLE_OVERLOAD, "expression-too-deep",
                    entity=type(expr).__name__,
                    message=f"expression nesting exceeds {self.max_depth} levels",
                )
            method = getattr(self, f"visit_{type(expr).__name__}", None)
            if method is None:
                raise TypeError(f"not an expression node: {type(expr).__name__}")
            return method(expr, ctx)
        except RecursionError:
            if self._depth > 1:
                raise
            return self._fail(
                expr, DiagnosticKind.NO_VIABLE_OVERLOAD, "expression-too-deep",
                entity=type(expr).__name__,
                message="expression nesting exceeds the interpreter's recursion limit",
            )
        finally:
            self._depth -= 1

    # ── helpers ────────────────────────────────────────────────────

    def _fail(
        self,
        node: Expr,
        kind: DiagnosticKind,
        key: str,
        *,
        entity: str = "",
        message: str = "",
        notes: Sequence[ErrorNote] = (),
        hint: str = "",
        children: Sequence[Annotation] = (),
    ) -> Annotation:
        self.collector.report(
            kind, key,
            entity=entity or render(node),
            location=node.loc,
            message=message,
            notes=notes,
            hint=hint,
        )
        return Annotation(node, Qualifier(), poisoned=True, children=list(children))

    @staticmethod
    def _poisoned(node: Expr, children: Sequence[Annotation]) -> Optional[Annotation]:
        if any(c.poisoned for c in children):
            return Annotation(node, Qualifier(), poisoned=True, children=list(children))
        return None

    def _note_address(self, entity: Optional[DeclEntity], site: Loc) -> None:
        if entity is None or entity.kind is not EntityKind.CLASS_CONSTANT or not entity.owner:
            return
        constant = self.table.constant(entity.owner, entity.name)
        if constant is not None:
            logger.debug("address of %s taken at %s", constant.qualified_name, site)
            constant.mark_address_taken(site)

    def _is_member(self, entity: DeclEntity) -> bool:
        return bool(entity.owner) and self.table.has_class(entity.owner)

    def _entity_value(self, node: Expr, entity: DeclEntity, ctx: EvaluationContext) -> Annotation:
        if entity.kind is EntityKind.CLASS_CONSTANT:
            return Annotation(node, Qualifier.value(True), is_lvalue=True,
                              type_name=entity.type_name, entity=entity)
        if entity.kind is EntityKind.CLASS:
            return self._fail(node, DiagnosticKind.NO_VIABLE_OVERLOAD, "type-used-as-value",
                              entity=entity.name)
        if entity.is_function:
            return self._fail(node, DiagnosticKind.NO_VIABLE_OVERLOAD, "function-not-called",
                              entity=entity.qualified_name)
        q = entity.qualifier
        if self._is_member(entity) and ctx.class_name is not None:
            # implicit this->member
            q = strictest(q, Qualifier.value(ctx.this_const))
        return Annotation(node, q, is_modifiable_lvalue=not q.top_const, is_lvalue=True,
                          type_name=entity.type_name, entity=entity)

    def _deref(self, node: Expr, inner: Annotation) -> Annotation:
        if not inner.qualifier.indirect:
            return self._fail(node, DiagnosticKind.NO_VIABLE_OVERLOAD, "no-dereference",
                              entity=render(inner.node), children=[inner])
        q = inner.qualifier.pointee()
        return Annotation(node, q, is_modifiable_lvalue=can_assign_through(inner.qualifier),
                          is_lvalue=True, type_name=inner.type_name, children=[inner])

    def _object(self, expr: Expr, arrow: bool, ctx: EvaluationContext) -> Annotation:
        """Evaluate the object operand of ``.``/``->``."""
        obj = self.evaluate(expr, ctx)
        if not arrow or obj.poisoned:
            return obj
        return self._deref(expr, obj)

    def _call_result(self, node: Expr, resolution: Resolution,
                     children: List[Annotation],
                     args: Sequence[Annotation] = ()) -> Annotation:
        if not resolution.ok:
            notes = [ErrorNote(f"candidate: {c.describe()}", c.loc) for c in resolution.candidates]
            return self._fail(node, resolution.failure, resolution.message_key,
                              entity=resolution.name, notes=notes, children=children)
        bound = resolution.bound
        passed = True
        for param, arg in zip(bound.params, args):
            target = param_qualifier(param)
            if target is None:
                continue
            passed = self.check_binding(
                target,
                reference="&" in param,
                value=arg,
                entity=bound.qualified_name,
                location=arg.node.loc,
                key="argument-drops-const",
            ) and passed
        if not passed:
            return Annotation(node, Qualifier(), poisoned=True, resolution=resolution,
                              children=children)
        q = bound.return_qualifier
        return Annotation(
            node, q,
            is_modifiable_lvalue=not q.top_const,
            is_lvalue=bound.returns_reference,
            type_name=bound.type_name,
            entity=bound,
            resolution=resolution,
            children=children,
        )

    @staticmethod
    def _arg_types(args: Sequence[Annotation]) -> List[Optional[str]]:
        types = []
        for a in args:
            if isinstance(a.node, Literal) and a.node.kind in _LITERAL_TYPES:
                types.append(_LITERAL_TYPES[a.node.kind])
            else:
                types.append(arg_spelling(a.qualifier, a.type_name))
        return types

    # ── leaves ─────────────────────────────────────────────────────

    def visit_Literal(self, node: Literal, ctx: EvaluationContext) -> Annotation:
        if node.kind is LiteralKind.STRING:
            return Annotation(node, Qualifier.pointer(pointee_const=True), type_name="char")
        type_name = {LiteralKind.CHAR: "char", LiteralKind.BOOL: "bool"}.get(
            node.kind, NUMERIC_LITERAL
        )
        return Annotation(node, Qualifier.value(False), type_name=type_name)

    def visit_VarRef(self, node: VarRef, ctx: EvaluationContext) -> Annotation:
        candidates = self.table.lookup(node.name, ctx.scope)
        if not candidates:
            return self._fail(node, DiagnosticKind.NO_VIABLE_OVERLOAD, "undeclared-identifier",
                              entity=node.name)
        return self._entity_value(node, candidates[0], ctx)

    def visit_ScopedRef(self, node: ScopedRef, ctx: EvaluationContext) -> Annotation:
        candidates = self.table.lookup_member(node.scope, node.name)
        if not candidates:
            return self._fail(node, DiagnosticKind.NO_VIABLE_OVERLOAD, "undeclared-identifier",
                              entity=f"{node.scope}::{node.name}")
        return self._entity_value(node, candidates[0], ctx)

    def visit_ThisRef(self, node: ThisRef, ctx: EvaluationContext) -> Annotation:
        if ctx.class_name is None:
            return self._fail(node, DiagnosticKind.NO_VIABLE_OVERLOAD, "this-outside-member",
                              entity="this")
        q = Qualifier.pointer(pointee_const=ctx.this_const, pointer_const=True)
        return Annotation(node, q, type_name=ctx.class_name)

    # ── indirection ────────────────────────────────────────────────

    def visit_Deref(self, node: Deref, ctx: EvaluationContext) -> Annotation:
        inner = self.evaluate(node.operand, ctx)
        if inner.poisoned:
            return self._poisoned(node, [inner])
        return self._deref(node, inner)

    def visit_AddressOf(self, node: AddressOf, ctx: EvaluationContext) -> Annotation:
        inner = self.evaluate(node.operand, ctx)
        if inner.poisoned:
            return self._poisoned(node, [inner])
        self._note_address(inner.entity, node.loc)
        return Annotation(node, address_of(inner.qualifier), type_name=inner.type_name,
                          children=[inner])

    def visit_MemberAccess(self, node: MemberAccess, ctx: EvaluationContext) -> Annotation:
        obj = self._object(node.obj, node.arrow, ctx)
        if obj.poisoned:
            return self._poisoned(node, [obj])
        if not self.table.has_class(obj.type_name):
            return self._fail(node, DiagnosticKind.NO_VIABLE_OVERLOAD, "not-a-class",
                              entity=render(node.obj), children=[obj])
        members = self.table.lookup_member(obj.type_name, node.member)
        if not members:
            return self._fail(node, DiagnosticKind.NO_VIABLE_OVERLOAD, "no-such-member",
                              entity=f"{obj.type_name}::{node.member}", children=[obj])
        member = members[0]
        if member.kind is EntityKind.CLASS_CONSTANT or member.is_function:
            ann = self._entity_value(node, member, ctx)
            ann.children = [obj]
            return ann
        q = strictest(member.qualifier, Qualifier.value(obj.qualifier.is_const))
        return Annotation(node, q, is_modifiable_lvalue=not q.top_const, is_lvalue=True,
                          type_name=member.type_name, entity=member, children=[obj])

    def visit_Index(self, node: Index, ctx: EvaluationContext) -> Annotation:
        base = self.evaluate(node.base, ctx)
        index = self.evaluate(node.index, ctx)
        poisoned = self._poisoned(node, [base, index])
        if poisoned:
            return poisoned
        if base.qualifier.indirect:
            ann = self._deref(node, base)
            ann.children.append(index)
            return ann
        if self.table.has_class(base.type_name):
            candidates = self.table.lookup_member(base.type_name, "operator[]")
            resolution = self.resolver.resolve_member(
                f"{base.type_name}::operator[]", candidates, base.qualifier,
                self._arg_types([index]),
            )
            return self._call_result(node, resolution, [base, index], [index])
        return self._fail(node, DiagnosticKind.NO_VIABLE_OVERLOAD, "no-subscript",
                          entity=render(node.base), children=[base, index])

    # ── calls ──────────────────────────────────────────────────────

    def visit_Call(self, node: Call, ctx: EvaluationContext) -> Annotation:
        obj = self._object(node.obj, node.arrow, ctx)
        args = [self.evaluate(a, ctx) for a in node.args]
        poisoned = self._poisoned(node, [obj] + args)
        if poisoned:
            return poisoned
        if not self.table.has_class(obj.type_name):
            return self._fail(node, DiagnosticKind.NO_VIABLE_OVERLOAD, "not-a-class",
                              entity=render(node.obj), children=[obj] + args)
        candidates = self.table.lookup_member(obj.type_name, node.method)
        resolution = self.resolver.resolve_member(
            f"{obj.type_name}::{node.method}", candidates, obj.qualifier, self._arg_types(args)
        )
        return self._call_result(node, resolution, [obj] + args, args)

    def visit_FreeCall(self, node: FreeCall, ctx: EvaluationContext) -> Annotation:
        rule = self.macros.get(node.name)
        if rule is not None:
            invocation = MacroInvocation(node.name, tuple(node.arg_text), list(node.args), node.loc)
            return self.visit_MacroInvocation(invocation, ctx)

        args = [self.evaluate(a, ctx) for a in node.args]
        poisoned = self._poisoned(node, args)
        if poisoned:
            return poisoned
        if "::" in node.name:
            scope, _, name = node.name.rpartition("::")
            candidates = self.table.lookup_member(scope, name)
        else:
            candidates = self.table.lookup(node.name, ctx.scope)
        if not candidates:
            return self._fail(node, DiagnosticKind.NO_VIABLE_OVERLOAD, "undeclared-identifier",
                              entity=node.name, children=args)
        arg_types = self._arg_types(args)
        if candidates[0].kind is EntityKind.MEMBER_FUNCTION:
            resolution = self.resolver.resolve_member(
                candidates[0].qualified_name, candidates,
                Qualifier.value(ctx.this_const), arg_types,
            )
        else:
            resolution = self.resolver.resolve_free(node.name, candidates, arg_types)
        return self._call_result(node, resolution, args, args)

    def visit_MacroInvocation(self, node: MacroInvocation, ctx: EvaluationContext) -> Annotation:
        rule = self.macros.get(node.name)
        args = [self.evaluate(a, ctx) for a in node.arg_exprs]
        poisoned = self._poisoned(node, args)
        if poisoned:
            return poisoned
        if rule is None:
            return self._fail(node, DiagnosticKind.NO_VIABLE_OVERLOAD, "undeclared-identifier",
                              entity=node.name, children=args)
        if len(node.args) != len(rule.params):
            return self._fail(
                node, DiagnosticKind.NO_VIABLE_OVERLOAD, "macro-arity-mismatch",
                entity=node.name,
                message=f"macro {node.name} takes {len(rule.params)} argument(s), "
                        f"{len(node.args)} given",
                notes=[ErrorNote("macro defined here", rule.loc)],
                children=args,
            )
        self.invocations.append((node, rule))
        type_name = next((a.type_name for a in args if a.type_name), "")
        return Annotation(node, Qualifier.value(False), type_name=type_name, children=args)

    # ── operators ──────────────────────────────────────────────────

    def visit_BinaryOp(self, node: BinaryOp, ctx: EvaluationContext) -> Annotation:
        left = self.evaluate(node.left, ctx)
        right = self.evaluate(node.right, ctx)
        children = [left, right]
        poisoned = self._poisoned(node, children)
        if poisoned:
            return poisoned

        op_name = f"operator{node.op}"
        if self.table.has_class(left.type_name):
            members = self.table.lookup_member(left.type_name, op_name)
            if members:
                resolution = self.resolver.resolve_member(
                    f"{left.type_name}::{op_name}", members, left.qualifier,
                    self._arg_types([right]),
                )
                return self._call_result(node, resolution, children, [right])
        free = [
            c for c in self.table.lookup(op_name, ctx.scope)
            if c.kind is EntityKind.FREE_FUNCTION
        ]
        if free:
            resolution = self.resolver.resolve_free(op_name, free, self._arg_types(children))
            return self._call_result(node, resolution, children, children)

        for operand in children:
            if self.table.has_class(operand.type_name) and not operand.qualifier.indirect:
                return self._fail(node, DiagnosticKind.NO_VIABLE_OVERLOAD, "no-such-operator",
                                  entity=f"{operand.type_name}::{op_name}", children=children)
        if node.op in _RELATIONAL:
            type_name = "bool"
        elif left.type_name and left.type_name != NUMERIC_LITERAL:
            type_name = left.type_name
        else:
            type_name = right.type_name or left.type_name
        q = Qualifier()
        if left.qualifier.indirect and node.op in ("+", "-"):
            # pointer arithmetic keeps the pointee
            q = Qualifier.pointer(pointee_const=left.qualifier.pointee_const)
        return Annotation(node, q, type_name=type_name, children=children)

    def visit_UnaryOp(self, node: UnaryOp, ctx: EvaluationContext) -> Annotation:
        operand = self.evaluate(node.operand, ctx)
        if operand.poisoned:
            return self._poisoned(node, [operand])
        type_name = "bool" if node.op == "!" else operand.type_name
        return Annotation(node, Qualifier(), type_name=type_name, children=[operand])

    def visit_IncDec(self, node: IncDec, ctx: EvaluationContext) -> Annotation:
        operand = self.evaluate(node.operand, ctx)
        if operand.poisoned:
            return self._poisoned(node, [operand])
        if not operand.is_modifiable_lvalue:
            return self._fail(
                node, DiagnosticKind.NON_MODIFIABLE_TARGET, "increment-of-non-modifiable",
                entity=self._target_name(operand),
                message=f"cannot apply {node.op} to non-modifiable {render(node.operand)}",
                children=[operand],
            )
        return Annotation(
            node, operand.qualifier,
            is_modifiable_lvalue=node.prefix,
            is_lvalue=node.prefix,
            type_name=operand.type_name,
            entity=operand.entity,
            children=[operand],
        )

    def visit_Assign(self, node: Assign, ctx: EvaluationContext) -> Annotation:
        target = self.evaluate(node.target, ctx)
        value = self.evaluate(node.value, ctx)
        children = [target, value]
        poisoned = self._poisoned(node, children)
        if poisoned:
            return poisoned
        if not target.is_modifiable_lvalue:
            key = self._target_key(target)
            return self._fail(
                node, DiagnosticKind.NON_MODIFIABLE_TARGET, key,
                entity=self._target_name(target),
                message=f"cannot assign to {render(node.target)}: {key.replace('-', ' ')}",
                children=children,
            )
        if target.qualifier.indirect and value.qualifier.indirect and not can_bind(
            target.qualifier, value.qualifier
        ):
            return self._fail(
                node, DiagnosticKind.CONST_VIOLATION, "binding-drops-const",
                entity=self._target_name(target),
                message=f"assigning {value.qualifier.spelling(value.type_name or 'T')} "
                        f"to {target.qualifier.spelling(target.type_name or 'T')} drops const",
                children=children,
            )
        return Annotation(node, target.qualifier, is_modifiable_lvalue=True, is_lvalue=True,
                          type_name=target.type_name, entity=target.entity, children=children)

    def _target_key(self, target: Annotation) -> str:
        node = target.node
        if not target.is_lvalue and target.resolution is None:
            return "assign-to-rvalue"
        if target.resolution is not None:
            return "assign-to-const-call-result"
        if isinstance(node, (Deref, Index)):
            return "assign-through-pointer-to-const"
        entity = target.entity
        if entity is not None:
            if entity.kind is EntityKind.CLASS_CONSTANT:
                return "assign-to-constant"
            if isinstance(node, MemberAccess) or (
                self._is_member(entity) and not entity.qualifier.top_const
            ):
                return "assign-to-const-member"
            if entity.qualifier.indirect:
                return "assign-to-const-pointer"
        return "assign-to-const-object"

    @staticmethod
    def _target_name(target: Annotation) -> str:
        if target.entity is not None:
            return target.entity.qualified_name
        return render(target.node)

    # ── casts ──────────────────────────────────────────────────────

    def visit_ConstCast(self, node: ConstCast, ctx: EvaluationContext) -> Annotation:
        inner = self.evaluate(node.operand, ctx)
        if inner.poisoned:
            return self._poisoned(node, [inner])
        source = inner.qualifier
        stripped = False
        if source.pointee_const and not node.type.const:
            source = strip_const(source, reason=render(node))
            stripped = True
        elif node.type.const:
            source = add_const(source)
        ann = self._cast_result(node, source.pointee_const, inner)
        ann.stripped = stripped
        if stripped:
            self.strips.append(ann)
        return ann

    def visit_StaticCast(self, node: StaticCast, ctx: EvaluationContext) -> Annotation:
        inner = self.evaluate(node.operand, ctx)
        if inner.poisoned:
            return self._poisoned(node, [inner])
        indirect = node.declarator.pointer or node.declarator.reference
        if indirect and inner.qualifier.pointee_const and not node.type.const:
            return self._fail(
                node, DiagnosticKind.CONST_VIOLATION, "static-cast-drops-const",
                entity=render(node.operand),
                hint="static_cast cannot remove const; use const_cast",
                children=[inner],
            )
        if not indirect:
            return self._cast_result(node, node.type.const, inner)
        source = add_const(inner.qualifier) if node.type.const else inner.qualifier
        return self._cast_result(node, source.pointee_const, inner)

    def _cast_result(self, node, const: bool, inner: Annotation) -> Annotation:
        type_name = normalize_type(node.type.name)
        if node.declarator.pointer:
            q = Qualifier.pointer(pointee_const=const, pointer_const=node.declarator.pointer_const)
            return Annotation(node, q, type_name=type_name, children=[inner])
        if node.declarator.reference:
            q = Qualifier.value(const)
            return Annotation(node, q, is_modifiable_lvalue=not const, is_lvalue=True,
                              type_name=type_name, entity=inner.entity, children=[inner])
        return Annotation(node, Qualifier.value(const), type_name=type_name, children=[inner])

    # ── bindings ───────────────────────────────────────────────────

    def check_binding(
        self,
        target: Qualifier,
        *,
        reference: bool,
        value: Annotation,
        entity: str,
        location: Optional[Loc],
        key: str = "binding-drops-const",
    ) -> bool:
        """Qualification conversion of a reference/pointer initialisation.

        Returns False (after reporting ConstViolation) when the binding
        would drop const.  Object copies always pass.
        """
        if value.poisoned:
            return True
        if reference:
            if value.entity is not None:
                self._note_address(value.entity, location or value.node.loc)
            source = Qualifier.value(value.qualifier.pointee_const)
            ok = can_bind(Qualifier.value(target.pointee_const), source)
        elif target.indirect and value.qualifier.indirect:
            ok = can_bind(target, value.qualifier)
        else:
            return True
        if not ok:
            self.collector.report(
                DiagnosticKind.CONST_VIOLATION, key,
                entity=entity,
                location=location,
                message=f"binding {value.qualifier.spelling(value.type_name or 'T')} "
                        f"to {target.spelling(value.type_name or 'T')}"
                        f"{'&' if reference else ''} drops const",
            )
            value.poisoned = True
        return ok
