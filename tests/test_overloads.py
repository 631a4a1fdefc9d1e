# tests/test_overloads.py
"""Overload selection on the constness of the invoking object."""

import pytest

from cvqual.declarations import DeclEntity, EntityKind
from cvqual.errors import DiagnosticKind
from cvqual.overloads import (
    NUMERIC_LITERAL,
    OverloadResolver,
    ResolutionRule,
    arg_spelling,
    drops_const,
    param_matches,
    param_qualifier,
)
from cvqual.qualifiers import CONST, MUTABLE, Qualifier


def _member(name, const, params=(), ret=MUTABLE):
    return DeclEntity(
        name=name,
        kind=EntityKind.MEMBER_FUNCTION,
        owner="TextBlock",
        type_name="char",
        is_const_qualified=const,
        params=params,
        return_qualifier=ret,
        returns_reference=True,
    )


@pytest.fixture
def resolver():
    return OverloadResolver()


@pytest.fixture
def subscript_pair():
    return [
        _member("operator[]", True, ("std::size_t",), CONST),
        _member("operator[]", False, ("std::size_t",)),
    ]


class TestConstPair:

    def test_const_object_binds_const_overload(self, resolver, subscript_pair):
        res = resolver.resolve_member("operator[]", subscript_pair, CONST, [NUMERIC_LITERAL])
        assert res.ok
        assert res.rule is ResolutionRule.CONST_OVERLOAD
        assert res.bound.is_const_qualified
        assert res.bound.return_qualifier == CONST

    def test_mutable_object_binds_non_const_overload(self, resolver, subscript_pair):
        res = resolver.resolve_member("operator[]", subscript_pair, MUTABLE, [NUMERIC_LITERAL])
        assert res.rule is ResolutionRule.NON_CONST_OVERLOAD
        assert not res.bound.is_const_qualified

    def test_selection_depends_only_on_object_constness(self, resolver, subscript_pair):
        reversed_pair = list(reversed(subscript_pair))
        a = resolver.resolve_member("operator[]", subscript_pair, CONST)
        b = resolver.resolve_member("operator[]", reversed_pair, CONST)
        assert a.bound == b.bound

    def test_const_pointer_object_counts_as_mutable_object(self, resolver, subscript_pair):
        # the pointer is const, the pointee is not
        res = resolver.resolve_member(
            "operator[]", subscript_pair, Qualifier.pointer(pointer_const=True).pointee()
        )
        assert res.rule is ResolutionRule.NON_CONST_OVERLOAD


class TestSoleCandidate:

    def test_const_member_on_mutable_object(self, resolver):
        res = resolver.resolve_member("length", [_member("length", True)], MUTABLE, [])
        assert res.rule is ResolutionRule.SOLE_CANDIDATE

    def test_non_const_member_on_const_object(self, resolver):
        res = resolver.resolve_member("clear", [_member("clear", False)], CONST, [])
        assert not res.ok
        assert res.failure is DiagnosticKind.CONST_VIOLATION
        assert res.message_key == "non-const-method-on-const-object"
        assert len(res.candidates) == 1


class TestFailures:

    def test_no_candidates(self, resolver):
        res = resolver.resolve_member("nope", [], MUTABLE)
        assert res.failure is DiagnosticKind.NO_VIABLE_OVERLOAD
        assert res.message_key == "no-such-member"

    def test_wrong_arity(self, resolver, subscript_pair):
        res = resolver.resolve_member("operator[]", subscript_pair, MUTABLE, [])
        assert res.message_key == "no-matching-arity"
        assert len(res.candidates) == 2

    def test_wrong_argument_type(self, resolver):
        fn = _member("set", False, ("const std::string&",))
        res = resolver.resolve_member("set", [fn], MUTABLE, ["Widget"])
        assert res.message_key == "no-matching-arguments"

    def test_ambiguous_parameter_lists(self, resolver):
        a = _member("f", False, ("int",))
        b = _member("f", False, ("long",))
        res = resolver.resolve_member("f", [a, b], MUTABLE, [NUMERIC_LITERAL])
        assert res.message_key == "ambiguous-call"

    def test_failures_never_raise(self, resolver):
        data = resolver.resolve_free("g", [_member("g", False)])
        assert data.failure is DiagnosticKind.NO_VIABLE_OVERLOAD


class TestFreeFunctions:

    def test_bind_free_function(self, resolver):
        fn = DeclEntity(
            "operator*", EntityKind.FREE_FUNCTION, type_name="Rational",
            params=("const Rational&", "const Rational&"), return_qualifier=CONST,
        )
        res = resolver.resolve_free("operator*", [fn], ["Rational", "Rational"])
        assert res.rule is ResolutionRule.FREE_FUNCTION
        assert res.bound is fn


class TestParamMatches:

    @pytest.mark.parametrize("param, arg, expected", [
        ("const Widget&", "Widget", True),
        ("int", NUMERIC_LITERAL, True),
        ("double", "int", True),
        ("Widget", NUMERIC_LITERAL, False),
        ("Widget", "Gadget", False),
        ("Widget", None, True),
        ("int", "int*", False),
        ("const char*", "char*", True),
        ("char*", "const char*", True),
        ("const std::vector<int>&", "std::vector<int>", True),
    ])
    def test_loose_matching(self, param, arg, expected):
        assert param_matches(param, arg) is expected

    @pytest.mark.parametrize("param, arg, expected", [
        ("char*", "const char*", True),
        ("int&", "const int", True),
        ("const char*", "const char*", False),
        ("const int&", "const int", False),
        ("int", "const int", False),
        ("char*", "char*", False),
        ("int&", NUMERIC_LITERAL, False),
    ])
    def test_drops_const(self, param, arg, expected):
        assert drops_const(param, arg) is expected

    def test_param_qualifier(self):
        assert param_qualifier("const char*") == Qualifier.pointer(pointee_const=True)
        assert param_qualifier("int&") == Qualifier.value(False)
        assert param_qualifier("const Widget&") == Qualifier.value(True)
        assert param_qualifier("int") is None

    def test_arg_spelling(self):
        assert arg_spelling(Qualifier.pointer(pointee_const=True), "char") == "const char*"
        assert arg_spelling(Qualifier.value(True), "int") == "const int"
        assert arg_spelling(MUTABLE, NUMERIC_LITERAL) == NUMERIC_LITERAL
        assert arg_spelling(MUTABLE, "") is None


class TestArgumentPreference:

    def test_exact_match_preferred(self, resolver):
        a = _member("set", False, ("int",))
        b = _member("set", False, ("double",))
        res = resolver.resolve_member("set", [a, b], MUTABLE, ["int"])
        assert res.bound is a
        res = resolver.resolve_member("set", [a, b], MUTABLE, ["double"])
        assert res.bound is b

    def test_top_level_const_argument_is_still_exact(self, resolver):
        a = _member("set", False, ("int",))
        b = _member("set", False, ("double",))
        res = resolver.resolve_member("set", [a, b], MUTABLE, ["const int"])
        assert res.bound is a

    def test_conversion_only_stays_ambiguous(self, resolver):
        a = _member("set", False, ("int",))
        b = _member("set", False, ("double",))
        res = resolver.resolve_member("set", [a, b], MUTABLE, ["long"])
        assert res.message_key == "ambiguous-call"

    def test_const_safe_overload_preferred(self, resolver):
        plain = DeclEntity("put", EntityKind.FREE_FUNCTION, params=("char*",))
        const = DeclEntity("put", EntityKind.FREE_FUNCTION, params=("const char*",))
        res = resolver.resolve_free("put", [plain, const], ["const char*"])
        assert res.bound is const
        res = resolver.resolve_free("put", [plain, const], ["char*"])
        assert res.bound is plain

    def test_sole_const_dropping_candidate_still_binds(self, resolver):
        plain = DeclEntity("put", EntityKind.FREE_FUNCTION, params=("char*",))
        res = resolver.resolve_free("put", [plain], ["const char*"])
        assert res.bound is plain
