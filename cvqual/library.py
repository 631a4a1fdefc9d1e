"""
Standard container models.

``std::vector<T>``, ``std::deque<T>``, ``std::list<T>`` and
``std::string`` are not declared by the analysed code, yet the iterator
rules only make sense through them: ``v.begin()`` on a const vector binds
the ``const`` overload and yields a ``const_iterator``.  The first time a
declaration names one of these types, its class scope is populated with the
accessor pairs below.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

from cvqual.declarations import DeclarationTable, DeclEntity, EntityKind, normalize_type
from cvqual.nodes import Loc
from cvqual.qualifiers import Qualifier

logger = logging.getLogger(__name__)

SEQUENCE_CONTAINERS = frozenset({"std::vector", "std::deque", "std::list"})
STRING_TYPES = {"std::string": "char", "std::wstring": "wchar_t"}

_CONST_ITERATORS = ("const_iterator", "const_reverse_iterator")
_ITERATORS = ("iterator", "reverse_iterator") + _CONST_ITERATORS

_TEMPLATE = re.compile(r"^(?P<base>[\w:]+?)\s*<\s*(?P<arg>.+)\s*>$")


def container_element(type_name: str) -> Optional[str]:
    """Element type of a modelled container, or ``None``."""
    name = normalize_type(type_name)
    if name in STRING_TYPES:
        return STRING_TYPES[name]
    m = _TEMPLATE.match(name)
    if m and m.group("base") in SEQUENCE_CONTAINERS:
        return m.group("arg").strip()
    return None


def iterator_info(type_name: str) -> Optional[Tuple[str, str, bool]]:
    """Split ``Container::iterator`` into (container, element, pointee_const)."""
    name = normalize_type(type_name)
    container, sep, tail = name.rpartition("::")
    if not sep or tail not in _ITERATORS:
        return None
    element = container_element(container)
    if element is None:
        return None
    return container, element, tail in _CONST_ITERATORS


def _accessor_pair(
    owner: str, name: str, element: str, *, iterator: bool, params: Tuple[str, ...] = ()
) -> List[DeclEntity]:
    pair = []
    for const in (True, False):
        if iterator:
            ret, ref = Qualifier.pointer(pointee_const=const), False
        else:
            ret, ref = Qualifier.value(const), True
        pair.append(DeclEntity(
            name=name,
            kind=EntityKind.MEMBER_FUNCTION,
            owner=owner,
            type_name=element,
            is_const_qualified=const,
            params=params,
            return_qualifier=ret,
            returns_reference=ref,
        ))
    return pair


def _single(owner: str, name: str, type_name: str, *, const: bool,
            params: Tuple[str, ...] = ()) -> DeclEntity:
    return DeclEntity(
        name=name,
        kind=EntityKind.MEMBER_FUNCTION,
        owner=owner,
        type_name=type_name,
        is_const_qualified=const,
        params=params,
    )


def container_members(owner: str, element: str) -> List[DeclEntity]:
    members: List[DeclEntity] = []
    for name in ("begin", "end", "rbegin", "rend"):
        members += _accessor_pair(owner, name, element, iterator=True)
    for name in ("cbegin", "cend"):
        members.append(DeclEntity(
            name=name,
            kind=EntityKind.MEMBER_FUNCTION,
            owner=owner,
            type_name=element,
            is_const_qualified=True,
            return_qualifier=Qualifier.pointer(pointee_const=True),
        ))
    for name in ("front", "back"):
        members += _accessor_pair(owner, name, element, iterator=False)
    for name in ("operator[]", "at"):
        members += _accessor_pair(owner, name, element, iterator=False, params=("size_t",))
    members.append(_single(owner, "size", "size_t", const=True))
    members.append(_single(owner, "empty", "bool", const=True))
    members.append(_single(owner, "clear", "void", const=False))
    members.append(_single(owner, "push_back", "void", const=False, params=(f"const {element}&",)))
    members.append(_single(owner, "pop_back", "void", const=False))
    return members


def ensure_container(table: DeclarationTable, type_name: str, loc: Loc = Loc()) -> bool:
    """Declare the model of *type_name* (or of its iterator's container).

    Returns True when *type_name* names a modelled container or iterator.
    """
    it = iterator_info(type_name)
    name = it[0] if it else normalize_type(type_name)
    element = container_element(name)
    if element is None:
        return False
    if table.has_class(name):
        return True
    table.declare_class(name, loc)
    for member in container_members(name, element):
        table.declare(member)
    logger.debug("declared library model %s (element %s)", name, element)
    return True
