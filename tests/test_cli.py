# tests/test_cli.py
"""Command-line front end: sub-commands, formats and exit codes."""

import json
import textwrap

import pytest

from cvqual.main import EXIT_ERROR, EXIT_INFRA, EXIT_OK, main

CLEAN = "int c = 0;\nvoid f() { c = 1; }\n"

POINTER = textwrap.dedent("""\
    char c = 'x';
    const char* p2 = &c;
    void f() {
        *p2 = 'y';
    }
""")

MACRO = textwrap.dedent("""\
    #define CALL_WITH_MAX(a, b) f((a) > (b) ? (a) : (b))
    void f(int x);
    void test() {
        int a = 5, b = 0;
        CALL_WITH_MAX(++a, b);
    }
""")


@pytest.fixture
def write(tmp_path):
    def _write(name, text):
        path = tmp_path / name
        path.write_text(text)
        return str(path)
    return _write


class TestCheck:

    def test_clean_file(self, write, capsys):
        assert main(["check", write("clean.cpp", CLEAN)]) == EXIT_OK
        assert capsys.readouterr().out == ""

    def test_gcc_format(self, write, capsys):
        path = write("ptr.cpp", POINTER)
        assert main(["check", path]) == EXIT_ERROR
        out = capsys.readouterr().out
        assert out.startswith(f"{path}:4:5: error: ")
        assert "[NonModifiableTarget/assign-through-pointer-to-const]" in out

    def test_json_format(self, write, capsys):
        main(["check", write("ptr.cpp", POINTER), "-f", "json"])
        (line,) = capsys.readouterr().out.splitlines()
        data = json.loads(line)
        assert data["messageKey"] == "assign-through-pointer-to-const"
        assert data["code"] == "CVQ-2001"

    def test_summary_format(self, write, capsys):
        main(["check", write("ptr.cpp", POINTER), "--format", "summary"])
        out = capsys.readouterr().out
        assert out.rstrip().endswith("--- 1 diagnostic(s), 1 error(s) ---")

    def test_sexp_format(self, write, capsys):
        main(["check", write("ptr.cpp", POINTER), "-f", "sexp"])
        assert capsys.readouterr().out.startswith("(diagnostic :kind NonModifiableTarget")

    def test_several_files_in_order(self, write, capsys):
        first = write("a.cpp", POINTER)
        second = write("b.cpp", POINTER)
        main(["check", first, second])
        lines = [l for l in capsys.readouterr().out.splitlines() if "error:" in l]
        assert [l.split(":")[0] for l in lines] == [first, second]

    def test_annotate_json(self, write, capsys):
        main(["check", write("clean.cpp", CLEAN), "--annotate", "json"])
        payload = json.loads(capsys.readouterr().out)
        assert payload["unit"].endswith("clean.cpp")
        assert [a["node"] for a in payload["annotations"]] == ["literal", "assign"]

    def test_output_file(self, write, tmp_path):
        target = tmp_path / "out" / "report.txt"
        main(["check", write("ptr.cpp", POINTER), "-o", str(target)])
        assert "assign-through-pointer-to-const" in target.read_text()

    def test_warnings_do_not_fail(self, write):
        assert main(["check", write("m.cpp", MACRO)]) == EXIT_OK


class TestCheckConfiguration:

    def test_enable(self, write, capsys):
        path = write("ptr.cpp", POINTER)
        assert main(["check", path, "--enable", "ConstViolation"]) == EXIT_OK
        assert capsys.readouterr().out == ""

    def test_suppress_code(self, write, capsys):
        assert main(["check", write("ptr.cpp", POINTER), "--suppress", "CVQ-2001"]) == EXIT_OK

    def test_inline_suppression(self, write):
        source = POINTER.replace("*p2 = 'y';", "*p2 = 'y'; // cvqual-suppress NonModifiableTarget")
        assert main(["check", write("ptr.cpp", source)]) == EXIT_OK

    def test_min_severity(self, write, capsys):
        main(["check", write("m.cpp", MACRO), "--min-severity", "error"])
        assert capsys.readouterr().out == ""

    def test_config_file(self, write, capsys):
        config = write("cvqual.json", json.dumps({"suppressed": ["NonModifiableTarget"]}))
        assert main(["check", write("ptr.cpp", POINTER), "--config", config]) == EXIT_OK

    def test_bad_config_file(self, write):
        config = write("cvqual.json", json.dumps({"colour": "red"}))
        assert main(["check", write("ptr.cpp", POINTER), "--config", config]) == EXIT_INFRA


class TestInfrastructure:

    def test_missing_file(self, tmp_path):
        assert main(["check", str(tmp_path / "absent.cpp")]) == EXIT_INFRA

    def test_no_command(self, capsys):
        assert main([]) == EXIT_INFRA
        assert "usage" in capsys.readouterr().err

    def test_unparseable_file_is_a_diagnostic(self, write, capsys):
        path = write("bad.cpp", "class A {\n    mutable int x;\n};\n")
        assert main(["check", path]) == EXIT_ERROR
        assert "[ParseFailure/unparseable-input]" in capsys.readouterr().out


class TestOtherCommands:

    def test_parse_json(self, write, capsys):
        assert main(["parse", write("c.cpp", CLEAN), "-f", "json"]) == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["node"] == "Unit"
        assert [i["node"] for i in data["items"]] == ["VarDecl", "FunctionDecl"]

    def test_parse_sexp(self, write, capsys):
        main(["parse", write("c.cpp", CLEAN)])
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("(var-decl ")
        assert lines[1].startswith("(function-decl ")

    def test_parse_failure(self, write, capsys):
        assert main(["parse", write("bad.cpp", "int x = ;\n")]) == EXIT_ERROR
        assert "unparseable-input" in capsys.readouterr().err

    def test_macros(self, write, capsys):
        assert main(["macros", write("m.cpp", MACRO)]) == EXIT_OK
        out = capsys.readouterr().out
        assert "CALL_WITH_MAX(a, b) at" in out
        assert "evaluated more than once: a, b" in out
        assert "inline void callWithMax(const T& a, const T& b)" in out

    def test_codes(self, capsys):
        assert main(["codes"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "CVQ-2002" in out
        assert "PrecedenceHazard" in out
