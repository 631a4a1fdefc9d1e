# tests/test_end_to_end.py
"""
End-to-end tests: C++ source → parse → declare → evaluate → placement →
macro hazards → collected diagnostics.
"""

import textwrap

import pytest

from cvqual.analyzer import analyze_batch, analyze_source
from cvqual.config import AnalyzerConfig
from cvqual.errors import Severity
from cvqual.frontend import parse_unit


def dedent(source):
    return textwrap.dedent(source).lstrip("\n")


class TestConstOverloads:

    WIDGET = """
        class Widget {
        public:
            int& get();
            const int& get() const;
        };
        Widget w;
        const Widget cw;
        void use() {
            {stmt}
        }
    """

    def _source(self, stmt):
        return self.WIDGET.replace("{stmt}", stmt)

    def test_non_const_object_gets_writable_reference(self, analyze, keys):
        assert keys(analyze(self._source("w.get() = 1;"))) == []

    def test_const_object_gets_const_reference(self, analyze, keys):
        result = analyze(self._source("cw.get() = 1;"))
        assert keys(result) == [("NonModifiableTarget", "assign-to-const-call-result")]
        (diag,) = result.diagnostics
        assert diag.location.line == 9

    def test_const_instance_binds_const_overload(self, analyze, keys):
        source = """
            class C { public: int f() const; int f(); };
            const C cc;
            void use() { cc.f(); }
        """
        result = analyze(source)
        assert keys(result) == []
        assert result.annotations[0].resolution.bound.is_const_qualified

    def test_const_instance_with_only_non_const_method(self, analyze, keys):
        source = """
            class C { public: int f(); };
            const C cc;
            void use() { cc.f(); }
        """
        assert keys(analyze(source)) == [("ConstViolation", "non-const-method-on-const-object")]

    def test_non_const_instance_may_call_const_only_method(self, analyze, keys):
        source = """
            class C { public: int f() const; };
            C c;
            void use() { c.f(); }
        """
        assert keys(analyze(source)) == []

    def test_resolution_is_recorded(self, analyze):
        result = analyze(self._source("cw.get();"))
        (ann,) = result.annotations
        assert ann.resolution.bound.is_const_qualified
        assert ann.resolution.rule.value == "const-overload"


class TestConstReturnValue:

    RATIONAL = """
        class Rational {
        public:
            Rational(int n);
        };
        {ret} operator*(const Rational& lhs, const Rational& rhs);
        Rational a(1);
        Rational b(2);
        Rational c(3);
        void use() {
            (a * b) = c;
        }
    """

    def test_assignment_to_const_product(self, analyze, keys):
        result = analyze(self.RATIONAL.replace("{ret}", "const Rational"))
        assert keys(result) == [("NonModifiableTarget", "assign-to-const-call-result")]

    def test_non_const_product_is_assignable(self, analyze, keys):
        assert keys(analyze(self.RATIONAL.replace("{ret}", "Rational"))) == []


class TestPointerConstness:

    POINTERS = """
        char c = 'x';
        char* p1 = &c;
        const char* p2 = &c;
        char* const p3 = &c;
        const char* const p4 = &c;
        void f() {
            {stmt}
        }
    """

    @pytest.mark.parametrize("stmt, expected", [
        ("*p1 = 'y';", []),
        ("*p2 = 'y';", [("NonModifiableTarget", "assign-through-pointer-to-const")]),
        ("p2 = &c;", []),
        ("*p3 = 'y';", []),
        ("p3 = &c;", [("NonModifiableTarget", "assign-to-const-pointer")]),
        ("*p4 = 'y';", [("NonModifiableTarget", "assign-through-pointer-to-const")]),
        ("p4 = &c;", [("NonModifiableTarget", "assign-to-const-pointer")]),
        ("p1 = p2;", [("ConstViolation", "binding-drops-const")]),
        ("p2 = p1;", []),
    ])
    def test_four_pointer_states(self, analyze, keys, stmt, expected):
        assert keys(analyze(self.POINTERS.replace("{stmt}", stmt))) == expected

    def test_initialisation_drops_const(self, analyze, keys):
        source = """
            char c = 'x';
            const char* p2 = &c;
            char* bad = p2;
        """
        result = analyze(source)
        assert keys(result) == [("ConstViolation", "binding-drops-const")]
        assert result.diagnostics[0].entity == "bad"

    def test_string_literal_to_mutable_pointer(self, analyze, keys):
        result = analyze('char* s = "text";\nconst char* t = "text";\n')
        assert keys(result) == [("ConstViolation", "binding-drops-const")]

    def test_reference_to_const_object(self, analyze, keys):
        source = """
            const int limit = 10;
            int& r = limit;
            const int& cr = limit;
        """
        assert keys(analyze(source)) == [("ConstViolation", "binding-drops-const")]


class TestMemberAccess:

    POINT = """
        class Point {
        public:
            int x;
            int* p;
            const int id;
        };
        Point pt;
        const Point cpt;
        void use() {
            {stmt}
        }
    """

    @pytest.mark.parametrize("stmt, expected", [
        ("pt.x = 1;", []),
        ("cpt.x = 1;", [("NonModifiableTarget", "assign-to-const-member")]),
        ("*cpt.p = 1;", []),
        ("pt.id = 1;", [("NonModifiableTarget", "assign-to-const-member")]),
    ])
    def test_constness_propagates_inward(self, analyze, keys, stmt, expected):
        assert keys(analyze(self.POINT.replace("{stmt}", stmt))) == expected


class TestIterators:

    SOURCE = """
        void g(const std::vector<int>& cv, std::vector<int>& v) {
            std::vector<int>::const_iterator cit = cv.begin();
            *cit = 1;
            std::vector<int>::iterator bad = cv.begin();
            const std::vector<int>::iterator fixed = v.begin();
            *fixed = 2;
            ++fixed;
            cv.push_back(1);
            cv[0] = 1;
        }
    """

    def test_iterator_rules(self, analyze, keys):
        assert keys(analyze(self.SOURCE)) == [
            ("NonModifiableTarget", "assign-through-pointer-to-const"),
            ("ConstViolation", "binding-drops-const"),
            ("NonModifiableTarget", "increment-of-non-modifiable"),
            ("ConstViolation", "non-const-method-on-const-object"),
            ("NonModifiableTarget", "assign-to-const-call-result"),
        ]

    def test_diagnostics_in_source_order(self, analyze):
        lines = [d.location.line for d in analyze(self.SOURCE).diagnostics]
        assert lines == sorted(lines)


class TestConstMemberFunctions:

    def test_const_member_cannot_modify_members(self, analyze, keys):
        source = """
            class Counter {
            public:
                void bump() const { count = count + 1; }
            private:
                int count;
            };
        """
        assert keys(analyze(source)) == [("NonModifiableTarget", "assign-to-const-member")]

    def test_const_member_cannot_call_non_const_member(self, analyze, keys):
        source = """
            class Counter {
            public:
                void reset();
                int peek() const { reset(); return count; }
            private:
                int count;
            };
        """
        assert keys(analyze(source)) == [("ConstViolation", "non-const-method-on-const-object")]

    def test_non_const_forwards_to_const_overload(self, analyze, keys):
        source = """
            class TextBlock {
            public:
                const char& operator[](int position) const
                { return text[position]; }
                char& operator[](int position)
                {
                    return const_cast<char&>(static_cast<const TextBlock&>(*this)[position]);
                }
            private:
                std::string text;
            };
            TextBlock tb;
            const TextBlock ctb;
            void use() {
                tb[0] = 'x';
                ctb[0] = 'x';
            }
        """
        result = analyze(source)
        assert keys(result) == [("NonModifiableTarget", "assign-to-const-call-result")]
        (strip,) = result.strips
        assert strip.stripped

    def test_const_overload_returning_mutable_reference(self, analyze, keys):
        source = """
            class TextBlock {
            public:
                char& operator[](int position) const
                { return text[position]; }
            private:
                std::string text;
            };
        """
        assert keys(analyze(source)) == [("ConstViolation", "return-drops-const")]


class TestConstantPlacement:

    @pytest.mark.parametrize("members, outside, expected", [
        ("static const int a = 1;", "", []),
        ("static const int b = 2;", "const int Widget::b;\nconst int* pb = &Widget::b;", []),
        ("static const int b = 2;", "const int* pb = &Widget::b;", ["missing-definition"]),
        (
            "static const int b = 2;",
            "const int Widget::b = 2;\nconst int* pb = &Widget::b;",
            ["redundant-initializer"],
        ),
        ("static const int c;", "const int Widget::c = 3;", []),
        ("static const int c;", "const int Widget::c;", ["missing-initializer"]),
        ("static const int c;", "", ["missing-definition"]),
        (
            "static const double d = 1.5;",
            "",
            ["forbidden-in-class-initializer", "missing-definition"],
        ),
        ("static const double d;", "const double Widget::d = 1.5;", []),
        ("enum { e = 3 };", "", []),
        ("enum { e = 3 };", "const int* pe = &Widget::e;", ["address-of-enumerator"]),
        ("static const int a = 1;", "const int Widget::zz = 1;", ["definition-of-undeclared"]),
        (
            "static const int a = 1;",
            "const int Widget::a;\nconst int Widget::a;",
            ["duplicate-definition"],
        ),
    ])
    def test_rows(self, analyze, keys, members, outside, expected):
        source = f"class Widget {{\npublic:\n    {members}\n}};\n{outside}\n"
        result = analyze(source)
        assert keys(result) == [("IllegalConstantPlacement", k) for k in expected]

    def test_address_site_is_reported(self, analyze):
        source = dedent("""
            class Widget {
            public:
                static const int b = 2;
            };
            const int* pb = &Widget::b;
        """)
        (diag,) = analyze(source).diagnostics
        assert diag.location.line == 5
        assert "const int Widget::b;" in diag.hint

    def test_array_bound_recommends_enum(self, analyze, keys):
        source = """
            class GamePlayer {
                static const int NumTurns;
                int scores[NumTurns];
            };
            const int GamePlayer::NumTurns = 5;
        """
        result = analyze(source)
        assert keys(result) == []
        (placement,) = result.placements
        assert placement.recommend_enum

    def test_static_data_member_definition_is_not_orphan(self, analyze, keys):
        source = """
            class Registry {
                static int count;
            };
            int Registry::count = 0;
        """
        assert keys(analyze(source)) == []


class TestMacroHazards:

    SOURCE = """
        #define CALL_WITH_MAX(a, b) f((a) > (b) ? (a) : (b))
        void f(int x);
        void test() {
            int a = 5, b = 0;
            CALL_WITH_MAX(++a, b);
            CALL_WITH_MAX(++a, b + 10);
        }
    """

    def test_definition_and_call_sites(self, analyze, keys):
        result = analyze(self.SOURCE)
        assert keys(result) == [
            ("MultipleEvaluationHazard", "parameter-evaluated-multiple-times"),
            ("MultipleEvaluationHazard", "parameter-evaluated-multiple-times"),
            ("MultipleEvaluationHazard", "side-effecting-argument"),
            ("MultipleEvaluationHazard", "side-effecting-argument"),
        ]
        assert [d.entity for d in result.diagnostics] == ["a", "b", "a", "a"]
        assert all(d.severity is Severity.WARNING for d in result.diagnostics)
        assert not result.has_errors

    def test_expansion_note(self, analyze):
        call = analyze(self.SOURCE).diagnostics[2]
        assert call.location.line == 5
        assert call.notes[0].message == "expands to: f((++a) > (b) ? (++a) : (b))"

    def test_report_and_proposal(self, analyze):
        (report,) = analyze(self.SOURCE).macro_reports
        assert report.precedence == []
        assert "inline void callWithMax(const T& a, const T& b)" in report.proposal

    def test_precedence_hazards(self, analyze, keys):
        result = analyze("#define SQUARE(x) x*x\n")
        assert keys(result) == [
            ("MultipleEvaluationHazard", "parameter-evaluated-multiple-times"),
            ("PrecedenceHazard", "unparenthesized-parameter"),
            ("PrecedenceHazard", "unparenthesized-body"),
        ]

    def test_precedence_hazards_can_be_disabled(self, analyze, keys):
        config = AnalyzerConfig(report_precedence_hazards=False)
        result = analyze("#define SQUARE(x) x*x\n", config)
        assert keys(result) == [
            ("MultipleEvaluationHazard", "parameter-evaluated-multiple-times"),
        ]

    def test_macro_redefinition(self, analyze, keys):
        source = "#define TWICE(x) ((x) + (x))\n#define TWICE(x) (2 * (x))\n"
        assert ("DuplicateDeclaration", "macro-redefined") in keys(analyze(source))

    def test_wrong_argument_count(self, analyze, keys):
        source = """
            #define NEG(x) (-(x))
            void f() {
                int y = 0;
                NEG(y, y);
            }
        """
        assert keys(analyze(source)) == [("NoViableOverload", "macro-arity-mismatch")]


class TestDeclarations:

    def test_duplicate_variable(self, analyze, keys):
        assert keys(analyze("int x;\nint x;\n")) == [
            ("DuplicateDeclaration", "conflicting-declaration"),
        ]

    def test_prototype_then_definition(self, analyze, keys):
        assert keys(analyze("void f();\nvoid f() {}\n")) == []

    def test_function_redefinition(self, analyze, keys):
        assert keys(analyze("void f() {}\nvoid f() {}\n")) == [
            ("DuplicateDeclaration", "redefinition"),
        ]

    def test_out_of_class_definition_must_match(self, analyze, keys):
        source = """
            class A {
            public:
                int get() const;
            };
            int A::get() { return 0; }
        """
        result = analyze(source)
        assert keys(result) == [("NoViableOverload", "no-matching-declaration")]
        assert result.diagnostics[0].notes[0].message == "candidate: int A::get() const"

    def test_definition_for_unknown_class(self, analyze, keys):
        assert keys(analyze("int B::get() { return 0; }\n")) == [
            ("NoViableOverload", "not-a-class"),
        ]

    def test_undeclared_identifier(self, analyze, keys):
        assert keys(analyze("void f() { y = 1; }\n")) == [
            ("NoViableOverload", "undeclared-identifier"),
        ]


class TestArgumentPassing:

    def test_pointer_and_pointee_const_member_overloads(self, analyze, keys):
        source = """
            class S {
            public:
                void f(char*);
                void f(const char*);
                void h(int);
                void h(int*);
            };
        """
        assert keys(analyze(source)) == []

    def test_pointer_to_const_argument_binds_const_overload(self, analyze, keys):
        source = """
            void put(char*);
            void put(const char*);
            const char* cs = "x";
            void use() { put(cs); }
        """
        result = analyze(source)
        assert keys(result) == []
        assert result.annotations[-1].resolution.bound.describe() == "void put(const char*)"

    def test_argument_that_drops_const(self, analyze, keys):
        source = """
            void put(char*);
            void mod(int&);
            const char* cs = "x";
            const int c = 1;
            void use() {
                put(cs);
                mod(c);
            }
        """
        result = analyze(source)
        assert keys(result) == [("ConstViolation", "argument-drops-const")] * 2
        assert [d.location.line for d in result.diagnostics] == [6, 7]

    def test_const_parameters_accept_const_arguments(self, analyze, keys):
        source = """
            void show(const char*);
            void look(const int&);
            const char* cs = "x";
            const int c = 1;
            void use() {
                show(cs);
                look(c);
            }
        """
        assert keys(analyze(source)) == []

    def test_member_argument_that_drops_const(self, analyze, keys):
        source = """
            class S { public: void fill(int&); };
            S s;
            const int c = 1;
            void use() { s.fill(c); }
        """
        assert keys(analyze(source)) == [("ConstViolation", "argument-drops-const")]

    def test_exact_match_is_preferred(self, analyze, keys):
        source = """
            class S { public: void set(int); void set(double); };
            S s;
            void use() {
                int x = 0;
                s.set(x);
                s.set(1);
                s.set(2.5);
            }
        """
        result = analyze(source)
        assert keys(result) == []
        bound = [a.resolution.bound.params for a in result.annotations if a.resolution]
        assert bound == [("int",), ("int",), ("double",)]


class TestRunBehaviour:

    def test_parse_failure_is_one_diagnostic(self, analyze, keys):
        result = analyze("class A {\n    mutable int x;\n};\n")
        assert keys(result) == [("ParseFailure", "unparseable-input")]
        assert result.has_errors

    def test_deeply_nested_input_is_a_parse_failure(self, analyze, keys):
        source = "int x;\nvoid f() { x = " + "(" * 500 + "x" + ")" * 500 + "; }\n"
        assert keys(analyze(source)) == [("ParseFailure", "unparseable-input")]

    def test_inline_suppression(self, analyze, keys):
        source = """
            const int k = 1;
            void f() {
                k = 2; // cvqual-suppress NonModifiableTarget
            }
        """
        assert keys(analyze(source)) == []

    def test_enabled_kinds(self, analyze, keys):
        source = "int x;\nint x;\nconst int k = 1;\nvoid f() { k = 2; }\n"
        config = AnalyzerConfig(enabled=["DuplicateDeclaration"])
        assert keys(analyze(source, config)) == [
            ("DuplicateDeclaration", "conflicting-declaration"),
        ]

    def test_identical_input_identical_output(self):
        source = dedent(TestIterators.SOURCE)
        first = analyze_source(source, "a.cpp").diagnostics
        second = analyze_source(source, "a.cpp").diagnostics
        assert first == second

    def test_units_are_independent(self):
        units = [
            parse_unit("int x;\n", "a.cpp"),
            parse_unit("int x;\n", "b.cpp"),
        ]
        results = analyze_batch(units, jobs=1)
        assert [r.unit for r in results] == ["a.cpp", "b.cpp"]
        assert all(r.diagnostics == [] for r in results)

    def test_batch_in_worker_processes(self):
        units = [
            parse_unit("const int k = 1;\nvoid f() { k = 2; }\n", "a.cpp"),
            parse_unit("int y;\n", "b.cpp"),
            parse_unit("int x;\nint x;\n", "c.cpp"),
        ]
        results = analyze_batch(units, AnalyzerConfig(jobs=2))
        assert [r.unit for r in results] == ["a.cpp", "b.cpp", "c.cpp"]
        assert [len(r.diagnostics) for r in results] == [1, 0, 1]
