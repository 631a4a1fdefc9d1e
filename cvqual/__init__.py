"""cvqual — const-correctness analyzer for a C++ subset.

Submodules
----------
frontend
    ``parsimonious`` grammar and ``NodeVisitor`` that build the node tree
    (``nodes``) from source text.

qualifiers
    The cv-qualifier algebra: composition, binding and assignment checks.

declarations
    Declaration table, scopes and class-constant records.

overloads
    Const/non-const overload selection for member and free calls.

evaluator
    Per-expression qualifier, lvalue and modifiability annotation.

placement
    Class-constant placement rules.

macros
    Function-like macro hazards and inline-function rewrites.

analyzer
    Four-phase driver and batch entry points.

main
    CLI entry-point with subcommands: ``check``, ``parse``,
    ``macros``, ``codes``.

Usage
-----
Command-line::

    python -m cvqual check widget.cpp
    python -m cvqual --help

Programmatic::

    from cvqual.analyzer import analyze_source
    from cvqual.config import AnalyzerConfig

    result = analyze_source(text, "widget.cpp", AnalyzerConfig(min_severity="warning"))
    for diag in result.diagnostics:
        print(diag.to_gcc_format())

"""

from __future__ import annotations

__version__: str = "0.1.0"
__all__: list[str] = [
    "__version__",
    "analyzer",
    "config",
    "errors",
    "frontend",
]
