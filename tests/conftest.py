"""Shared fixtures for the cvqual test suite."""

import textwrap

import pytest

from cvqual.analyzer import analyze_source
from cvqual.config import AnalyzerConfig


def dedent(source: str) -> str:
    return textwrap.dedent(source).lstrip("\n")


@pytest.fixture
def analyze():
    """Analyze a dedented C++ snippet; returns the AnalysisResult."""
    def run(source: str, config: AnalyzerConfig = None, filename: str = "unit.cpp"):
        return analyze_source(dedent(source), filename, config)
    return run


@pytest.fixture
def keys():
    """(kind, message_key) pairs of a result's diagnostics, in order."""
    def extract(result):
        return [(d.kind.value, d.message_key) for d in result.diagnostics]
    return extract
