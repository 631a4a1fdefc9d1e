"""
cvqual/qualifiers.py
====================

cv-qualification value type and its composition rules.

A :class:`Qualifier` describes one entity or expression result:

- plain objects and references carry a single *value* constness
  (``pointee_const``; ``indirect`` is False),
- pointers and iterators carry two independent flags: whether the
  referent may be modified through them (``pointee_const``) and whether
  the pointer/iterator itself may be rebound (``pointer_const``).

The four pointer states are distinct::

    char* p                 Qualifier.pointer()
    const char* p           Qualifier.pointer(pointee_const=True)
    char* const p           Qualifier.pointer(pointer_const=True)
    const char* const p     Qualifier.pointer(pointee_const=True, pointer_const=True)

Iterators mirror pointers: ``const_iterator`` is pointee-const, a
``const``-declared iterator variable is pointer-const.

Qualification only grows.  The single exception is :func:`strip_const`,
the explicitly named operation used where a non-const overload forwards
to its const twin and removes the const of the result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

logger = logging.getLogger(__name__)

__all__ = [
    "Qualifier",
    "MUTABLE",
    "CONST",
    "compose",
    "strictest",
    "const_top",
    "can_assign_through",
    "can_rebind",
    "can_bind",
    "add_const",
    "strip_const",
    "address_of",
]


@dataclass(frozen=True)
class Qualifier:
    pointee_const: bool = False
    pointer_const: bool = False
    indirect: bool = False

    @classmethod
    def value(cls, const: bool = False) -> "Qualifier":
        """Qualifier of a plain object or reference."""
        return cls(pointee_const=const)

    @classmethod
    def pointer(cls, *, pointee_const: bool = False, pointer_const: bool = False) -> "Qualifier":
        """Qualifier of a pointer or iterator."""
        return cls(pointee_const=pointee_const, pointer_const=pointer_const, indirect=True)

    @property
    def is_const(self) -> bool:
        """Constness of the object itself, as seen by overload selection."""
        return self.pointee_const

    @property
    def top_const(self) -> bool:
        """Constness of the outermost layer (what an assignment would change)."""
        return self.pointer_const if self.indirect else self.pointee_const

    def pointee(self) -> "Qualifier":
        """Qualifier of the lvalue obtained by dereferencing."""
        return Qualifier.value(self.pointee_const)

    def spelling(self, type_name: str = "T") -> str:
        """C++ spelling, e.g. ``const T* const``."""
        base = f"const {type_name}" if self.pointee_const else type_name
        if not self.indirect:
            return base
        return f"{base}* const" if self.pointer_const else f"{base}*"

    def __str__(self) -> str:
        return self.spelling()


MUTABLE = Qualifier()
CONST = Qualifier.value(True)


def compose(outer: Qualifier, inner: Qualifier) -> Qualifier:
    """Apply *outer* qualification on top of *inner*.

    Field-wise union: const-of-const is const, and nothing already const
    becomes non-const.
    """
    return Qualifier(
        pointee_const=outer.pointee_const or inner.pointee_const,
        pointer_const=outer.pointer_const or inner.pointer_const,
        indirect=outer.indirect or inner.indirect,
    )


def const_top(q: Qualifier) -> Qualifier:
    """Make the outermost layer const (``T`` -> ``const T``, ``T*`` -> ``T* const``)."""
    if q.indirect:
        return replace(q, pointer_const=True)
    return replace(q, pointee_const=True)


def strictest(member: Qualifier, enclosing: Qualifier) -> Qualifier:
    """Qualifier of ``obj.member``.

    Constness of the enclosing object propagates inward onto the member's
    outermost layer.  A pointer member of a const object becomes a const
    pointer; what it points to keeps its declared constness.
    """
    if enclosing.is_const:
        return const_top(member)
    return member


def can_assign_through(q: Qualifier) -> bool:
    """False iff the pointee/value is const."""
    return not q.pointee_const


def can_rebind(q: Qualifier) -> bool:
    """False iff the pointer/iterator itself is const."""
    return not q.pointer_const


def can_bind(target: Qualifier, source: Qualifier) -> bool:
    """Qualification conversion check for reference/pointer bindings.

    A binding may add pointee constness but never drop it.
    """
    return target.pointee_const or not source.pointee_const


def add_const(q: Qualifier) -> Qualifier:
    """Explicit qualification addition (``static_cast<const T&>``)."""
    return replace(q, pointee_const=True)


def strip_const(q: Qualifier, *, reason: str = "") -> Qualifier:
    """Remove pointee/value constness.

    This is the only operation in the package that loses qualification.
    It is reached exclusively through an explicit ``const_cast`` in the
    analysed code, and every call is logged.
    """
    if q.pointee_const:
        logger.debug("const stripped from %s%s", q, f" ({reason})" if reason else "")
    return replace(q, pointee_const=False)


def address_of(q: Qualifier) -> Qualifier:
    """Qualifier of ``&x`` for an lvalue ``x`` qualified *q*."""
    return Qualifier.pointer(pointee_const=q.top_const)
