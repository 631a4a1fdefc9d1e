# tests/test_declarations.py
"""
Declaration table: conflicts, const overload pairs, scoping and the
standard container models.
"""

from cvqual.declarations import (
    DeclarationTable,
    DeclEntity,
    EntityKind,
    is_integral_type,
    normalize_type,
    param_signature,
)
from cvqual.library import container_element, ensure_container, iterator_info
from cvqual.qualifiers import CONST, Qualifier


def _method(name, owner, const=False, params=()):
    return DeclEntity(
        name=name,
        kind=EntityKind.MEMBER_FUNCTION,
        owner=owner,
        is_const_qualified=const,
        params=params,
    )


class TestDeclare:

    def test_duplicate_object_conflicts(self):
        table = DeclarationTable()
        first = DeclEntity("x", EntityKind.OBJECT)
        assert table.declare(first) is None
        assert table.declare(DeclEntity("x", EntityKind.OBJECT, CONST)) is first
        assert table.lookup("x") == (first,)

    def test_const_overload_pair_coexists(self):
        table = DeclarationTable()
        table.declare_class("Widget")
        assert table.declare(_method("get", "Widget")) is None
        assert table.declare(_method("get", "Widget", const=True)) is None
        assert len(table.lookup_member("Widget", "get")) == 2

    def test_same_signature_twice_conflicts(self):
        table = DeclarationTable()
        table.declare_class("Widget")
        table.declare(_method("get", "Widget", const=True))
        assert table.declare(_method("get", "Widget", const=True)) is not None

    def test_pointer_and_pointee_const_overloads_coexist(self):
        table = DeclarationTable()
        table.declare_class("S")
        assert table.declare(_method("f", "S", params=("char*",))) is None
        assert table.declare(_method("f", "S", params=("const char*",))) is None
        assert table.declare(_method("h", "S", params=("int",))) is None
        assert table.declare(_method("h", "S", params=("int*",))) is None
        assert len(table.lookup_member("S", "f")) == 2
        assert len(table.lookup_member("S", "h")) == 2

    def test_reference_and_top_level_const_do_not_overload(self):
        table = DeclarationTable()
        table.declare_class("S")
        table.declare(_method("g", "S", params=("int",)))
        assert table.declare(_method("g", "S", params=("const int&",))) is not None

    def test_function_and_object_conflict(self):
        table = DeclarationTable()
        table.declare(DeclEntity("f", EntityKind.FREE_FUNCTION))
        assert table.declare(DeclEntity("f", EntityKind.OBJECT)) is not None

    def test_class_redeclaration(self):
        table = DeclarationTable()
        assert table.declare_class("A") is None
        conflict = table.declare_class("A")
        assert conflict is not None and conflict.kind is EntityKind.CLASS


class TestLookup:

    def test_class_scope_shadows_global(self):
        table = DeclarationTable()
        table.declare(DeclEntity("n", EntityKind.OBJECT))
        table.declare_class("C")
        member = DeclEntity("n", EntityKind.OBJECT, CONST, owner="C")
        table.declare(member)
        body = table.function_scope("C::f()", owner="C")
        assert table.lookup("n", body) == (member,)

    def test_nested_block_sees_enclosing_locals(self):
        table = DeclarationTable()
        outer = table.function_scope("f()")
        local = DeclEntity("i", EntityKind.OBJECT, owner="f()")
        table.declare(local, outer)
        inner = table.function_scope("f()/3:5", parent=outer)
        assert table.lookup("i", inner) == (local,)

    def test_unknown_name(self):
        assert DeclarationTable().lookup("nope") == ()

    def test_describe_function(self):
        entity = DeclEntity(
            "get", EntityKind.MEMBER_FUNCTION, owner="W", type_name="int",
            is_const_qualified=True, return_qualifier=CONST, returns_reference=True,
        )
        assert entity.describe() == "const int& W::get() const"


class TestTypes:

    def test_normalize_type(self):
        assert normalize_type("const Foo &") == "Foo"
        assert normalize_type("unsigned   int") == "unsigned int"

    def test_param_signature(self):
        assert param_signature("const int&") == "int"
        assert param_signature("const char* const") == "const char*"
        assert param_signature("char*") == "char*"
        assert param_signature("const Widget") == "Widget"
        assert param_signature("int**") == "int**"

    def test_integral_types(self):
        assert is_integral_type("const int")
        assert is_integral_type("std::size_t")
        assert not is_integral_type("double")
        assert is_integral_type("Color", frozenset({"Color"}))


class TestLibraryModels:

    def test_container_element(self):
        assert container_element("std::vector<int>") == "int"
        assert container_element("std::string") == "char"
        assert container_element("Widget") is None

    def test_iterator_info(self):
        assert iterator_info("std::vector<int>::iterator") == ("std::vector<int>", "int", False)
        assert iterator_info("std::vector<int>::const_iterator") == (
            "std::vector<int>", "int", True
        )
        assert iterator_info("Widget::iterator") is None

    def test_ensure_container_declares_accessor_pairs(self):
        table = DeclarationTable()
        assert ensure_container(table, "const std::vector<int>&")
        begins = table.lookup_member("std::vector<int>", "begin")
        assert len(begins) == 2
        const_begin = next(b for b in begins if b.is_const_qualified)
        assert const_begin.return_qualifier == Qualifier.pointer(pointee_const=True)

    def test_ensure_container_is_idempotent(self):
        table = DeclarationTable()
        ensure_container(table, "std::vector<int>")
        assert ensure_container(table, "std::vector<int>::iterator")
        assert len(table.lookup_member("std::vector<int>", "begin")) == 2

    def test_non_container(self):
        table = DeclarationTable()
        assert not ensure_container(table, "Widget")
        assert not table.has_class("Widget")
