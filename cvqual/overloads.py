"""
Overload resolution on member-function constness.

When two member functions share a name and parameter list and differ only
in const-qualification, the constness of the invoking object is the only
differentiator, so selection is an exact two-way rule rather than a
best-match ranking:

    object const      -> the const-qualified overload
    object non-const  -> the non-const overload
    single candidate  -> that candidate, unless it is non-const and the
                         object is const (ConstViolation)

Resolution is a pure function of the candidate set, the object qualifier
and the argument types.  It reports failures as data; it never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from cvqual.declarations import DeclEntity, EntityKind, normalize_type, param_signature
from cvqual.errors import DiagnosticKind
from cvqual.library import iterator_info
from cvqual.qualifiers import Qualifier

logger = logging.getLogger(__name__)

#: Argument type of a numeric literal; matches any arithmetic parameter.
NUMERIC_LITERAL = "<numeric>"

ARITHMETIC_TYPES = frozenset({
    "bool", "char", "signed char", "unsigned char", "wchar_t",
    "short", "unsigned short", "int", "unsigned", "unsigned int",
    "long", "unsigned long", "long long", "unsigned long long",
    "float", "double", "long double",
    "size_t", "std::size_t", "ptrdiff_t", "std::ptrdiff_t",
})


class ResolutionRule(Enum):
    SOLE_CANDIDATE = "sole-candidate"
    CONST_OVERLOAD = "const-overload"
    NON_CONST_OVERLOAD = "non-const-overload"
    FREE_FUNCTION = "free-function"


@dataclass(frozen=True)
class Resolution:
    """Outcome of binding one call."""
    name: str
    bound: Optional[DeclEntity] = None
    rule: Optional[ResolutionRule] = None
    failure: Optional[DiagnosticKind] = None
    message_key: str = ""
    candidates: Tuple[DeclEntity, ...] = ()

    @property
    def ok(self) -> bool:
        return self.bound is not None

    @classmethod
    def failed(
        cls,
        name: str,
        kind: DiagnosticKind,
        key: str,
        candidates: Sequence[DeclEntity] = (),
    ) -> "Resolution":
        return cls(name=name, failure=kind, message_key=key, candidates=tuple(candidates))


def arg_spelling(q: Qualifier, type_name: str) -> Optional[str]:
    """Type of an argument as matched against parameters.

    ``const char*`` for a pointer to const, ``const int`` for a const
    object, ``None`` when the type is unknown.
    """
    if not type_name or type_name == NUMERIC_LITERAL:
        return type_name or None
    const = "const " if q.pointee_const else ""
    return f"{const}{type_name}{'*' if q.indirect else ''}"


def param_key(param: str) -> str:
    """Signature form of a parameter; iterators spell as the pointer they model."""
    info = iterator_info(param)
    if info is not None:
        _, element, pointee_const = info
        return f"const {element}*" if pointee_const else f"{element}*"
    return param_signature(param)


def _shape(spelling: str) -> str:
    return normalize_type(spelling) + "*" * spelling.count("*")


def _pointee_const(spelling: str) -> bool:
    return "const" in spelling.split("*")[0].split()


def param_qualifier(param: str) -> Optional[Qualifier]:
    """Qualifier a pointer or reference parameter binds its argument with.

    ``None`` for by-value parameters, which copy.
    """
    key = param_key(param)
    if "*" in key:
        return Qualifier.pointer(pointee_const=_pointee_const(key))
    if "&" in param:
        return Qualifier.value(_pointee_const(param))
    return None


def param_matches(param: str, arg_type: Optional[str]) -> bool:
    """Parameter/argument compatibility by shape.

    Constness is left to :func:`drops_const`; unknown argument types
    match anything and numeric literals match any arithmetic type.
    """
    if arg_type is None:
        return True
    p = _shape(param_key(param))
    if arg_type == NUMERIC_LITERAL:
        return p in ARITHMETIC_TYPES
    a = _shape(arg_type)
    if p == a:
        return True
    return p in ARITHMETIC_TYPES and a in ARITHMETIC_TYPES


def drops_const(param: str, arg_type: Optional[str]) -> bool:
    """Whether passing *arg_type* to *param* loses the constness of what
    the argument refers to."""
    if arg_type is None or arg_type == NUMERIC_LITERAL:
        return False
    target = param_qualifier(param)
    if target is None or target.pointee_const:
        return False
    if target.indirect:
        return "*" in arg_type and _pointee_const(arg_type)
    return "*" not in arg_type and _pointee_const(arg_type)


def exact_match(param: str, arg_type: Optional[str]) -> bool:
    """Identity conversion: same signature type, no arithmetic conversion
    and no added pointee const."""
    if arg_type is None:
        return True
    if arg_type == NUMERIC_LITERAL:
        return False
    return param_key(param) == param_signature(arg_type)


class OverloadResolver:
    """Binds calls to declared functions."""

    def resolve_member(
        self,
        name: str,
        candidates: Sequence[DeclEntity],
        object_qualifier: Qualifier,
        arg_types: Optional[Sequence[Optional[str]]] = None,
    ) -> Resolution:
        """Bind ``obj.name(args)`` where ``obj`` is qualified *object_qualifier*."""
        functions = [c for c in candidates if c.kind is EntityKind.MEMBER_FUNCTION]
        viable, failure = self._viable(name, functions, arg_types)
        if failure is not None:
            return failure

        object_const = object_qualifier.is_const
        if len(viable) == 1:
            sole = viable[0]
            if object_const and not sole.is_const_qualified:
                logger.debug("%s: only non-const candidate for const object", name)
                return Resolution.failed(
                    name,
                    DiagnosticKind.CONST_VIOLATION,
                    "non-const-method-on-const-object",
                    viable,
                )
            return self._bind(name, sole, ResolutionRule.SOLE_CANDIDATE, viable)

        const_overload = next(c for c in viable if c.is_const_qualified)
        plain_overload = next(c for c in viable if not c.is_const_qualified)
        if object_const:
            return self._bind(name, const_overload, ResolutionRule.CONST_OVERLOAD, viable)
        return self._bind(name, plain_overload, ResolutionRule.NON_CONST_OVERLOAD, viable)

    def resolve_free(
        self,
        name: str,
        candidates: Sequence[DeclEntity],
        arg_types: Optional[Sequence[Optional[str]]] = None,
    ) -> Resolution:
        """Bind ``name(args)`` among namespace-scope functions."""
        functions = [c for c in candidates if c.kind is EntityKind.FREE_FUNCTION]
        viable, failure = self._viable(name, functions, arg_types)
        if failure is not None:
            return failure
        return self._bind(name, viable[0], ResolutionRule.FREE_FUNCTION, viable)

    # ------------------------------------------------------------------

    def _viable(
        self,
        name: str,
        functions: List[DeclEntity],
        arg_types: Optional[Sequence[Optional[str]]],
    ) -> Tuple[List[DeclEntity], Optional[Resolution]]:
        """Filter by arity then argument types.

        Candidates that would drop an argument's const are set aside when
        another candidate takes it; if several parameter lists still
        survive, exact matches win.  On success the survivors share one
        parameter list (at most one const and one non-const overload).
        """
        if not functions:
            return [], Resolution.failed(name, DiagnosticKind.NO_VIABLE_OVERLOAD, "no-such-member")

        if arg_types is not None:
            by_arity = [f for f in functions if len(f.params) == len(arg_types)]
            if not by_arity:
                return [], Resolution.failed(
                    name, DiagnosticKind.NO_VIABLE_OVERLOAD, "no-matching-arity", functions
                )
            typed = [
                f for f in by_arity
                if all(param_matches(p, a) for p, a in zip(f.params, arg_types))
            ]
            if not typed:
                return [], Resolution.failed(
                    name, DiagnosticKind.NO_VIABLE_OVERLOAD, "no-matching-arguments", by_arity
                )
            keeps_const = [
                f for f in typed
                if not any(drops_const(p, a) for p, a in zip(f.params, arg_types))
            ]
            # with no const-safe candidate the binding check reports the loss
            typed = keeps_const or typed
        else:
            typed = list(functions)

        groups: Dict[Tuple[str, ...], List[DeclEntity]] = {}
        for f in typed:
            groups.setdefault(tuple(param_key(p) for p in f.params), []).append(f)
        if len(groups) > 1 and arg_types is not None:
            exact = {
                key: group for key, group in groups.items()
                if all(exact_match(p, a) for p, a in zip(group[0].params, arg_types))
            }
            if len(exact) == 1:
                logger.debug("%s: exact match preferred", name)
                groups = exact
        if len(groups) > 1:
            return [], Resolution.failed(
                name, DiagnosticKind.NO_VIABLE_OVERLOAD, "ambiguous-call", typed
            )
        return next(iter(groups.values())), None

    @staticmethod
    def _bind(
        name: str,
        entity: DeclEntity,
        rule: ResolutionRule,
        candidates: Sequence[DeclEntity],
    ) -> Resolution:
        logger.debug("bound %s -> %s (%s)", name, entity.describe(), rule.value)
        return Resolution(name=name, bound=entity, rule=rule, candidates=tuple(candidates))
