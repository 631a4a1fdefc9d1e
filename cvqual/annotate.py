"""
Annotation dumps.

Each evaluated expression is written as an S-expression (via ``sexpdata``)
or as a plain dict (for JSON)::

    (assign :text "(a * b) = c" :qualifier (const) :lvalue t :modifiable nil
      :type "Rational"
      (binary :text "a * b" ... :call ("operator*" :rule free-function :bound "const Rational operator*(...)"))
      (var :text "c" ...))
"""

from __future__ import annotations

from dataclasses import fields, is_dataclass
from enum import Enum
from typing import Any, Dict, List

import sexpdata
from sexpdata import Symbol

from cvqual.evaluator import Annotation, render
from cvqual.errors import Diagnostic
from cvqual.nodes import Loc, Unit
from cvqual.qualifiers import Qualifier

_TAGS = {
    "Literal": "literal",
    "VarRef": "var",
    "ScopedRef": "scoped",
    "ThisRef": "this",
    "Deref": "deref",
    "AddressOf": "address-of",
    "MemberAccess": "member",
    "Index": "index",
    "Call": "call",
    "FreeCall": "call",
    "MacroInvocation": "macro",
    "BinaryOp": "binary",
    "UnaryOp": "unary",
    "IncDec": "incdec",
    "Assign": "assign",
    "ConstCast": "const-cast",
    "StaticCast": "static-cast",
}

T = Symbol("t")
NIL = Symbol("nil")


def _flag(value: bool) -> Symbol:
    return T if value else NIL


def qualifier_words(q: Qualifier) -> List[str]:
    if q.indirect:
        return [
            "pointee-const" if q.pointee_const else "pointee-mutable",
            "pointer-const" if q.pointer_const else "pointer-mutable",
        ]
    return ["const" if q.pointee_const else "mutable"]


def annotation_to_dict(ann: Annotation) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "node": _TAGS.get(type(ann.node).__name__, type(ann.node).__name__),
        "text": render(ann.node),
        "line": ann.node.loc.line,
        "col": ann.node.loc.col,
        "qualifier": qualifier_words(ann.qualifier),
        "lvalue": ann.is_lvalue,
        "modifiable": ann.is_modifiable_lvalue,
        "type": ann.type_name,
    }
    if ann.entity is not None:
        out["entity"] = ann.entity.qualified_name
    if ann.resolution is not None:
        res = ann.resolution
        out["call"] = {
            "name": res.name,
            "rule": res.rule.value if res.rule else None,
            "bound": res.bound.describe() if res.bound else None,
            "failure": res.failure.value if res.failure else None,
        }
    if ann.stripped:
        out["stripped"] = True
    if ann.poisoned:
        out["poisoned"] = True
    if ann.children:
        out["children"] = [annotation_to_dict(c) for c in ann.children]
    return out


def annotation_to_sexp(ann: Annotation) -> list:
    form: list = [
        Symbol(_TAGS.get(type(ann.node).__name__, type(ann.node).__name__)),
        Symbol(":text"), render(ann.node),
        Symbol(":at"), [ann.node.loc.line, ann.node.loc.col],
        Symbol(":qualifier"), [Symbol(w) for w in qualifier_words(ann.qualifier)],
        Symbol(":lvalue"), _flag(ann.is_lvalue),
        Symbol(":modifiable"), _flag(ann.is_modifiable_lvalue),
    ]
    if ann.type_name:
        form += [Symbol(":type"), ann.type_name]
    if ann.entity is not None:
        form += [Symbol(":entity"), ann.entity.qualified_name]
    if ann.resolution is not None and ann.resolution.ok:
        res = ann.resolution
        form += [Symbol(":call"), [
            res.name,
            Symbol(":rule"), Symbol(res.rule.value),
            Symbol(":bound"), res.bound.describe(),
        ]]
    if ann.stripped:
        form += [Symbol(":stripped"), T]
    if ann.poisoned:
        form += [Symbol(":poisoned"), T]
    form += [annotation_to_sexp(c) for c in ann.children]
    return form


def diagnostic_to_sexp(diag: Diagnostic) -> list:
    loc = diag.location
    form: list = [
        Symbol("diagnostic"),
        Symbol(":kind"), Symbol(diag.kind.value),
        Symbol(":code"), diag.code.code,
        Symbol(":key"), Symbol(diag.message_key),
        Symbol(":severity"), Symbol(diag.severity.value),
    ]
    if loc is not None:
        form += [Symbol(":at"), [loc.file, loc.line, loc.col]]
    if diag.entity:
        form += [Symbol(":entity"), diag.entity]
    form += [Symbol(":message"), diag.message]
    if diag.hint:
        form += [Symbol(":hint"), diag.hint]
    return form


def dumps_annotations(annotations: List[Annotation]) -> str:
    """One S-expression per line, in evaluation order."""
    return "\n".join(sexpdata.dumps(annotation_to_sexp(a)) for a in annotations)


def dumps_diagnostics(diagnostics: List[Diagnostic]) -> str:
    return "\n".join(sexpdata.dumps(diagnostic_to_sexp(d)) for d in diagnostics)


def loads_form(text: str) -> list:
    """Read back one dumped form as nested Python lists of str/int.

    ``t`` and ``nil`` stay symbols (read back as ``"t"``/``"nil"``).
    """
    return _plain(sexpdata.loads(text, nil=None, true=None))


def _plain(value: Any) -> Any:
    if isinstance(value, Symbol):
        getter = getattr(value, "value", None)
        return str(getter()) if callable(getter) else str(value)
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


# ═══════════════════════════════════════════════════════════════════
#  Unit model
# ═══════════════════════════════════════════════════════════════════

def _kebab(name: str) -> str:
    out = []
    for i, ch in enumerate(name):
        if ch.isupper() and i:
            out.append("-")
        out.append(ch.lower())
    return "".join(out)


def node_to_sexp(value: Any) -> Any:
    """Generic S-expression form of a unit-model node."""
    if isinstance(value, Loc):
        return [value.line, value.col]
    if isinstance(value, Enum):
        return Symbol(value.value)
    if isinstance(value, bool):
        return _flag(value)
    if value is None:
        return NIL
    if isinstance(value, (list, tuple)):
        return [node_to_sexp(v) for v in value]
    if is_dataclass(value):
        form: list = [Symbol(_kebab(type(value).__name__))]
        for f in fields(value):
            if f.name == "source":
                continue
            form += [Symbol(f":{f.name.replace('_', '-')}"), node_to_sexp(getattr(value, f.name))]
        return form
    return value


def node_to_dict(value: Any) -> Any:
    """JSON-ready form of a unit-model node."""
    if isinstance(value, Loc):
        return {"line": value.line, "col": value.col}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [node_to_dict(v) for v in value]
    if is_dataclass(value):
        out: Dict[str, Any] = {"node": type(value).__name__}
        for f in fields(value):
            if f.name != "source":
                out[f.name] = node_to_dict(getattr(value, f.name))
        return out
    return value


def dumps_unit(unit: Unit) -> str:
    """One S-expression per top-level item."""
    return "\n".join(sexpdata.dumps(node_to_sexp(item)) for item in unit.items)
