# tests/test_evaluator.py
"""
Expression evaluation against a hand-built declaration table.
"""

import pytest

from cvqual.declarations import DeclarationTable, DeclEntity, EntityKind
from cvqual.errors import DiagnosticCollector
from cvqual.evaluator import EvaluationContext, ExpressionEvaluator, render
from cvqual.frontend import parse_expression
from cvqual.nodes import UnaryOp, VarRef
from cvqual.qualifiers import CONST, MUTABLE, Qualifier


def _table():
    table = DeclarationTable()
    for name, kind, q in [
        ("c", EntityKind.OBJECT, MUTABLE),
        ("cc", EntityKind.OBJECT, CONST),
        ("p1", EntityKind.POINTER, Qualifier.pointer()),
        ("p2", EntityKind.POINTER, Qualifier.pointer(pointee_const=True)),
        ("p3", EntityKind.POINTER, Qualifier.pointer(pointer_const=True)),
    ]:
        table.declare(DeclEntity(name, kind, q, type_name="char"))
    return table


class Harness:

    def __init__(self, max_depth=256):
        self.table = _table()
        self.collector = DiagnosticCollector()
        self.evaluator = ExpressionEvaluator(self.table, self.collector, max_depth=max_depth)

    def run(self, text):
        ctx = EvaluationContext(self.table.global_scope)
        return self.evaluator.evaluate(parse_expression(text), ctx)

    @property
    def keys(self):
        return [d.message_key for d in self.collector.diagnostics]


@pytest.fixture
def h():
    return Harness()


class TestAssignments:

    @pytest.mark.parametrize("text", ["c = 'a'", "*p1 = 'a'", "p2 = &c", "*p3 = 'a'", "p2 = p1"])
    def test_legal(self, h, text):
        ann = h.run(text)
        assert not ann.poisoned
        assert h.keys == []

    @pytest.mark.parametrize("text, key", [
        ("cc = 'a'", "assign-to-const-object"),
        ("*p2 = 'a'", "assign-through-pointer-to-const"),
        ("p3 = &c", "assign-to-const-pointer"),
        ("p2[0] = 'a'", "assign-through-pointer-to-const"),
    ])
    def test_non_modifiable_targets(self, h, text, key):
        ann = h.run(text)
        assert ann.poisoned
        assert h.keys == [key]
        assert h.collector.diagnostics[0].kind.value == "NonModifiableTarget"

    def test_assignment_drops_const(self, h):
        h.run("p1 = p2")
        (diag,) = h.collector.diagnostics
        assert diag.kind.value == "ConstViolation"
        assert diag.message_key == "binding-drops-const"

    def test_address_of_const_object(self, h):
        h.run("p1 = &cc")
        assert h.keys == ["binding-drops-const"]

    def test_increment_of_const(self, h):
        h.run("++cc")
        assert h.keys == ["increment-of-non-modifiable"]

    def test_rebind_pointer_to_const(self, h):
        ann = h.run("++p2")
        assert not ann.poisoned
        assert ann.is_modifiable_lvalue


class TestQualifiers:

    def test_deref_pointer_to_const(self, h):
        ann = h.run("*p2")
        assert ann.qualifier == CONST
        assert ann.is_lvalue and not ann.is_modifiable_lvalue

    def test_address_of(self, h):
        ann = h.run("&cc")
        assert ann.qualifier == Qualifier.pointer(pointee_const=True)
        assert not ann.is_lvalue

    def test_string_literal_is_pointer_to_const(self, h):
        ann = h.run('"text"')
        assert ann.qualifier == Qualifier.pointer(pointee_const=True)

    def test_children_follow_operands(self, h):
        ann = h.run("c = *p1")
        assert [render(a.node) for a in ann.walk()] == ["c = *p1", "c", "*p1", "p1"]


class TestCasts:

    def test_const_cast_strips_once(self, h):
        ann = h.run("const_cast<char&>(cc)")
        assert ann.stripped
        assert ann.is_modifiable_lvalue
        assert h.evaluator.strips == [ann]

    def test_const_cast_to_const_adds(self, h):
        ann = h.run("const_cast<const char&>(c)")
        assert not ann.stripped
        assert ann.qualifier == CONST
        assert h.evaluator.strips == []

    def test_static_cast_cannot_strip(self, h):
        ann = h.run("static_cast<char&>(cc)")
        assert ann.poisoned
        assert h.keys == ["static-cast-drops-const"]

    def test_static_cast_adds_const(self, h):
        ann = h.run("static_cast<const char&>(c)")
        assert ann.qualifier == CONST
        assert not ann.is_modifiable_lvalue


class TestBindings:

    def test_reference_to_const_object(self, h):
        ann = h.run("cc")
        ok = h.evaluator.check_binding(
            Qualifier.value(False), reference=True, value=ann, entity="r", location=None
        )
        assert not ok
        assert h.keys == ["binding-drops-const"]
        assert ann.poisoned

    def test_const_reference_to_anything(self, h):
        ok = h.evaluator.check_binding(
            CONST, reference=True, value=h.run("c"), entity="r", location=None
        )
        assert ok

    def test_copy_of_const_object(self, h):
        ok = h.evaluator.check_binding(
            MUTABLE, reference=False, value=h.run("cc"), entity="x", location=None
        )
        assert ok
        assert h.keys == []

    def test_string_literal_to_mutable_pointer(self, h):
        ok = h.evaluator.check_binding(
            Qualifier.pointer(), reference=False, value=h.run('"text"'),
            entity="s", location=None, key="string-literal-drops-const",
        )
        assert not ok
        assert h.keys == ["string-literal-drops-const"]


class TestFailures:

    def test_undeclared_identifier(self, h):
        ann = h.run("nope = 1")
        assert ann.poisoned
        assert h.keys == ["undeclared-identifier"]

    def test_poison_is_reported_once(self, h):
        h.run("*nope = *nope2")
        assert h.keys == ["undeclared-identifier", "undeclared-identifier"]

    def test_this_outside_member(self, h):
        h.run("*this")
        assert h.keys == ["this-outside-member"]

    def test_depth_limit(self):
        h = Harness(max_depth=2)
        ann = h.run("c + c * c")
        assert ann.poisoned
        assert "expression-too-deep" in h.keys

    def test_recursion_limit_is_a_diagnostic(self):
        h = Harness(max_depth=1_000_000)
        expr = VarRef("c")
        for _ in range(50_000):
            expr = UnaryOp("-", expr)
        ann = h.evaluator.evaluate(expr, EvaluationContext(h.table.global_scope))
        assert ann.poisoned
        assert h.keys == ["expression-too-deep"]
        assert h.evaluator._depth == 0
