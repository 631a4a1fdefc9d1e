"""
Declaration table.

Registry of the named entities of one analysis unit: objects, pointers,
references, iterators, member and free functions, classes and class-scope
constants.  Entities are append-only for the lifetime of one run and the
table is rebuilt for every unit.

Scopes nest: function body -> class -> global.  A name found in an inner
scope shadows every outer declaration of that name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from cvqual.nodes import ConstantDefinition, ConstantForm, Loc
from cvqual.qualifiers import Qualifier

logger = logging.getLogger(__name__)

__all__ = [
    "EntityKind",
    "TypeCategory",
    "DeclEntity",
    "ClassConstant",
    "Scope",
    "DeclarationTable",
    "INTEGRAL_TYPES",
    "is_integral_type",
    "normalize_type",
    "param_signature",
]


# ============================================================================
# PART 1 — ENTITIES
# ============================================================================


class EntityKind(Enum):
    OBJECT = "object"
    POINTER = "pointer"
    REFERENCE = "reference"
    ITERATOR = "iterator"
    MEMBER_FUNCTION = "member-function"
    CLASS_CONSTANT = "class-constant"
    FREE_FUNCTION = "free-function"
    CLASS = "class"

    @property
    def is_function(self) -> bool:
        return self in (EntityKind.MEMBER_FUNCTION, EntityKind.FREE_FUNCTION)

    @property
    def is_variable(self) -> bool:
        return self in (
            EntityKind.OBJECT,
            EntityKind.POINTER,
            EntityKind.REFERENCE,
            EntityKind.ITERATOR,
        )


class TypeCategory(Enum):
    INTEGRAL_LITERAL_COMPATIBLE = "IntegralLiteralCompatible"
    NON_INTEGRAL_OR_NON_LITERAL = "NonIntegralOrNonLiteral"


INTEGRAL_TYPES = frozenset({
    "bool", "char", "signed char", "unsigned char", "wchar_t",
    "char8_t", "char16_t", "char32_t",
    "short", "short int", "unsigned short", "unsigned short int",
    "int", "signed", "signed int", "unsigned", "unsigned int",
    "long", "long int", "unsigned long", "unsigned long int",
    "long long", "long long int", "unsigned long long",
    "unsigned long long int",
    "size_t", "std::size_t", "ptrdiff_t", "std::ptrdiff_t",
    "int8_t", "int16_t", "int32_t", "int64_t",
    "uint8_t", "uint16_t", "uint32_t", "uint64_t",
    "std::int8_t", "std::int16_t", "std::int32_t", "std::int64_t",
    "std::uint8_t", "std::uint16_t", "std::uint32_t", "std::uint64_t",
})


def normalize_type(name: str) -> str:
    """Drop cv/ref noise and collapse whitespace: ``const Foo &`` -> ``Foo``."""
    words = name.replace("&", " ").replace("*", " ").split()
    return " ".join(w for w in words if w not in ("const", "volatile"))


def param_signature(spelling: str) -> str:
    """Parameter type as it takes part in a function signature.

    References and top-level const are dropped; a pointer keeps the
    constness of what it points to::

        const int&          -> int
        const char* const   -> const char*
        char*               -> char*
    """
    base, star, tail = spelling.replace("&", " ").partition("*")
    words = base.split()
    name = " ".join(w for w in words if w not in ("const", "volatile"))
    if not star:
        return name
    pointee = f"const {name}" if "const" in words else name
    return pointee + "*" * (1 + tail.count("*"))


def is_integral_type(name: str, enum_types: frozenset = frozenset()) -> bool:
    base = normalize_type(name)
    return base in INTEGRAL_TYPES or base in enum_types


@dataclass(frozen=True)
class DeclEntity:
    """
    A declared name.

    ``owner`` is the enclosing class name, or ``None`` at namespace scope
    (function locals use the function's scope name).  For functions,
    ``is_const_qualified`` is part of the signature: ``f()`` and
    ``f() const`` are distinct overloads.
    """
    name: str
    kind: EntityKind
    qualifier: Qualifier = Qualifier()
    owner: Optional[str] = None
    type_name: str = ""
    is_const_qualified: bool = False
    params: Tuple[str, ...] = ()
    return_qualifier: Qualifier = Qualifier()
    returns_reference: bool = False
    loc: Loc = field(default_factory=Loc)
    node: Any = field(default=None, compare=False, repr=False)

    @property
    def is_function(self) -> bool:
        return self.kind.is_function

    @property
    def signature(self) -> Tuple[Any, ...]:
        if self.is_function:
            return (self.name, tuple(param_signature(p) for p in self.params), self.is_const_qualified)
        return (self.name,)

    @property
    def qualified_name(self) -> str:
        if self.owner and self.kind is not EntityKind.CLASS:
            return f"{self.owner}::{self.name}"
        return self.name

    def describe(self) -> str:
        if self.is_function:
            ret = self.return_qualifier.spelling(self.type_name or "void")
            if self.returns_reference:
                ret += "&"
            cv = " const" if self.is_const_qualified else ""
            return f"{ret} {self.qualified_name}({', '.join(self.params)}){cv}"
        if self.kind is EntityKind.CLASS:
            return f"class {self.name}"
        spelled = self.qualifier.spelling(self.type_name or "T")
        if self.kind is EntityKind.REFERENCE:
            spelled += "&"
        return f"{spelled} {self.qualified_name}"


@dataclass
class ClassConstant:
    """
    A class-scope constant and the facts the placement rules need.

    ``address_taken`` is set while usage sites are analysed; the entry is
    otherwise fixed once declared.
    """
    name: str
    owner: str
    category: TypeCategory
    has_in_class_initializer: bool
    address_taken: bool = False
    form: ConstantForm = ConstantForm.STATIC_CONST
    type_name: str = ""
    loc: Loc = field(default_factory=Loc)
    address_sites: List[Loc] = field(default_factory=list)
    array_bound_sites: List[Loc] = field(default_factory=list)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.owner, self.name)

    @property
    def qualified_name(self) -> str:
        return f"{self.owner}::{self.name}"

    def mark_address_taken(self, site: Loc) -> None:
        self.address_taken = True
        self.address_sites.append(site)


# ============================================================================
# PART 2 — SCOPES
# ============================================================================


class Scope:
    """
    A lexical scope containing entities.
    Supports nested scopes with parent lookup.
    """

    def __init__(
        self,
        name: Optional[str],
        parent: Optional[Scope] = None,
        kind: str = "global",
    ) -> None:
        self.name = name
        self.parent = parent
        self.kind = kind  # "global", "class", "function"
        self._entities: Dict[str, List[DeclEntity]] = {}

    def find_conflict(self, entity: DeclEntity) -> Optional[DeclEntity]:
        for existing in self._entities.get(entity.name, ()):
            if existing.is_function and entity.is_function:
                if existing.signature == entity.signature:
                    return existing
            else:
                return existing
        return None

    def add(self, entity: DeclEntity) -> None:
        self._entities.setdefault(entity.name, []).append(entity)

    def lookup_local(self, name: str) -> Tuple[DeclEntity, ...]:
        return tuple(self._entities.get(name, ()))

    def lookup(self, name: str) -> Tuple[DeclEntity, ...]:
        """Nearest enclosing scope that declares *name* wins entirely."""
        scope: Optional[Scope] = self
        while scope is not None:
            found = scope.lookup_local(name)
            if found:
                return found
            scope = scope.parent
        return ()

    def __repr__(self) -> str:
        return f"Scope({self.name!r}, kind={self.kind!r})"


# ============================================================================
# PART 3 — DECLARATION TABLE
# ============================================================================


class DeclarationTable:
    """
    Per-unit registry.  ``declare`` is the only way in and nothing is ever
    removed.
    """

    def __init__(self) -> None:
        self._global = Scope(None)
        self._classes: Dict[str, Scope] = {}
        self._functions: Dict[str, Scope] = {}
        self._constants: Dict[Tuple[str, str], ClassConstant] = {}
        self._definitions: Dict[Tuple[str, str], List[ConstantDefinition]] = {}
        self._enum_types: set = set()

    # ── scopes ──────────────────────────────────────────────────

    @property
    def global_scope(self) -> Scope:
        return self._global

    def class_scope(self, class_name: str) -> Optional[Scope]:
        return self._classes.get(class_name)

    def has_class(self, class_name: str) -> bool:
        return class_name in self._classes

    def function_scope(
        self,
        scope_name: str,
        owner: Optional[str] = None,
        parent: Optional[Scope] = None,
    ) -> Scope:
        """Get or create the body scope of a function (or of a nested block)."""
        scope = self._functions.get(scope_name)
        if scope is None:
            if parent is None:
                parent = self._classes.get(owner) if owner else None
            scope = Scope(scope_name, parent=parent or self._global, kind="function")
            self._functions[scope_name] = scope
        return scope

    def scope_for(self, owner: Optional[str]) -> Scope:
        if owner is None:
            return self._global
        if owner in self._functions:
            return self._functions[owner]
        if owner in self._classes:
            return self._classes[owner]
        raise KeyError(f"unknown scope: {owner!r}")

    # ── declarations ────────────────────────────────────────────

    def declare_class(self, name: str, loc: Loc = Loc(), node: Any = None) -> Optional[DeclEntity]:
        """Register a class type; returns the conflicting entity on failure."""
        entity = DeclEntity(name=name, kind=EntityKind.CLASS, type_name=name, loc=loc, node=node)
        conflict = self.declare(entity)
        if conflict is None:
            self._classes[name] = Scope(name, parent=self._global, kind="class")
        return conflict

    def declare(self, entity: DeclEntity, scope: Optional[Scope] = None) -> Optional[DeclEntity]:
        """Register *entity*.

        Returns the already-registered entity it conflicts with, in which
        case nothing is registered.  Member functions that differ only in
        const-qualification do not conflict.
        """
        scope = scope or self.scope_for(entity.owner)
        conflict = scope.find_conflict(entity)
        if conflict is not None:
            logger.debug("duplicate declaration of %s", entity.qualified_name)
            return conflict
        scope.add(entity)
        return None

    def add_constant(self, constant: ClassConstant) -> None:
        self._constants.setdefault(constant.key, constant)

    def add_definition(self, definition: ConstantDefinition) -> None:
        key = (definition.class_name, definition.name)
        self._definitions.setdefault(key, []).append(definition)

    def add_enum_type(self, name: str) -> None:
        self._enum_types.add(name)

    # ── queries ─────────────────────────────────────────────────

    def lookup(self, name: str, scope: Optional[Scope] = None) -> Tuple[DeclEntity, ...]:
        """Visible candidates for *name*: own scope first, then enclosing."""
        return (scope or self._global).lookup(name)

    def lookup_member(self, class_name: str, name: str) -> Tuple[DeclEntity, ...]:
        """Members named *name* of *class_name* only (``obj.name``)."""
        scope = self._classes.get(class_name)
        return scope.lookup_local(name) if scope is not None else ()

    def constant(self, owner: str, name: str) -> Optional[ClassConstant]:
        return self._constants.get((owner, name))

    def constants(self) -> List[ClassConstant]:
        return list(self._constants.values())

    def definitions_for(self, owner: str, name: str) -> List[ConstantDefinition]:
        return list(self._definitions.get((owner, name), ()))

    def definitions(self) -> List[ConstantDefinition]:
        return [d for group in self._definitions.values() for d in group]

    @property
    def enum_types(self) -> frozenset:
        return frozenset(self._enum_types)
