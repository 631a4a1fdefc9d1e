"""
Function-like macro hazards.

A macro parameter that appears more than once in the body is evaluated
once per appearance at every call site, so ``CALL_WITH_MAX(++a, b)``
increments ``a`` once or twice depending on the comparison.  That is a
hazard no amount of parenthesization repairs.  Parameters (and bodies) that
are not wrapped in parentheses are a second, independent hazard.

For hazardous macros the detector proposes the equivalent inline function
template taking every argument by const reference.  The proposal is
advisory text; the detector never changes its input.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from cvqual.nodes import Loc, MacroDef

logger = logging.getLogger(__name__)

_TOKEN = re.compile(
    r"""
    (?P<string>"(?:\\.|[^"\\])*")
  | (?P<char>'(?:\\.|[^'\\])*')
  | (?P<ident>[A-Za-z_]\w*)
  | (?P<number>\.?\d[\w.]*)
  | (?P<op>\#\#|\#|->|\+\+|--|<<=|>>=|<<|>>|<=|>=|==|!=|&&|\|\||[-+*/%&|^!~<>=?:.,;()\[\]{}])
  | (?P<space>\s+)
  | (?P<other>.)
    """,
    re.VERBOSE,
)

_BINARY_OPS = frozenset({
    "+", "-", "*", "/", "%", "<", ">", "<=", ">=", "==", "!=",
    "&&", "||", "&", "|", "^", "?", ":", "<<", ">>", "=",
})

_SIDE_EFFECT = re.compile(r"\+\+|--|(?<![=!<>])=(?!=)|[A-Za-z_]\w*\s*\(")


@dataclass(frozen=True)
class Token:
    kind: str
    text: str

    @property
    def significant(self) -> bool:
        return self.kind != "space"


def tokenize(text: str) -> List[Token]:
    return [Token(m.lastgroup or "other", m.group()) for m in _TOKEN.finditer(text)]


def _significant_neighbours(tokens: Sequence[Token], index: int) -> Tuple[Optional[Token], Optional[Token]]:
    before = next((tokens[i] for i in range(index - 1, -1, -1) if tokens[i].significant), None)
    after = next((tokens[i] for i in range(index + 1, len(tokens)) if tokens[i].significant), None)
    return before, after


def _is_wrapped(tokens: Sequence[Token]) -> bool:
    """True when the whole token run is one parenthesized group."""
    sig = [t for t in tokens if t.significant]
    if len(sig) < 2 or sig[0].text != "(" or sig[-1].text != ")":
        return False
    depth = 0
    for i, tok in enumerate(sig):
        if tok.text == "(":
            depth += 1
        elif tok.text == ")":
            depth -= 1
            if depth == 0 and i != len(sig) - 1:
                return False
    return True


def _is_call_shaped(tokens: Sequence[Token]) -> bool:
    sig = [t for t in tokens if t.significant]
    return len(sig) >= 3 and sig[0].kind == "ident" and _is_wrapped(sig[1:])


def _has_top_level_operator(tokens: Sequence[Token]) -> bool:
    depth = 0
    for tok in tokens:
        if tok.text in ("(", "["):
            depth += 1
        elif tok.text in (")", "]"):
            depth -= 1
        elif depth == 0 and tok.kind == "op" and tok.text in _BINARY_OPS:
            return True
    return False


def lower_camel(name: str) -> str:
    parts = [p for p in name.lower().split("_") if p]
    if not parts:
        return name
    return parts[0] + "".join(p.capitalize() for p in parts[1:])


# ═══════════════════════════════════════════════════════════════════
#  Macro rule
# ═══════════════════════════════════════════════════════════════════

@dataclass
class MacroRule:
    name: str
    params: List[str]
    body: str
    tokens: List[Token] = field(default_factory=list)
    occurrences: Dict[str, int] = field(default_factory=dict)
    loc: Loc = field(default_factory=Loc)

    @classmethod
    def from_def(cls, macro: MacroDef) -> "MacroRule":
        return cls.build(macro.name, macro.params, macro.body, macro.loc)

    @classmethod
    def build(cls, name: str, params: Sequence[str], body: str, loc: Loc = Loc()) -> "MacroRule":
        tokens = tokenize(body.strip())
        counts = {p: 0 for p in params}
        for i, tok in enumerate(tokens):
            if tok.kind == "ident" and tok.text in counts:
                before, _ = _significant_neighbours(tokens, i)
                if before is not None and before.text == "#":
                    continue  # stringized, not evaluated
                counts[tok.text] += 1
        return cls(name=name, params=list(params), body=body.strip(), tokens=tokens,
                   occurrences=counts, loc=loc)

    def hazardous_params(self) -> List[str]:
        return [p for p in self.params if self.occurrences.get(p, 0) > 1]


@dataclass(frozen=True)
class PrecedenceIssue:
    param: Optional[str]
    detail: str


@dataclass
class MacroReport:
    rule: MacroRule
    multiple_evaluation: List[str] = field(default_factory=list)
    precedence: List[PrecedenceIssue] = field(default_factory=list)
    proposal: Optional[str] = None

    @property
    def hazardous(self) -> bool:
        return bool(self.multiple_evaluation or self.precedence)


@dataclass(frozen=True)
class InvocationHazard:
    param: str
    argument: str
    evaluations: int
    expansion: str


# ═══════════════════════════════════════════════════════════════════
#  Detector
# ═══════════════════════════════════════════════════════════════════

class MacroHazardDetector:

    def analyze(self, rule: MacroRule) -> MacroReport:
        report = MacroReport(rule=rule, multiple_evaluation=rule.hazardous_params())
        report.precedence = self._precedence_issues(rule)
        if report.hazardous:
            report.proposal = self.propose_rewrite(rule)
        logger.debug(
            "macro %s: occurrences=%s hazards=%s",
            rule.name, rule.occurrences, report.multiple_evaluation,
        )
        return report

    def _precedence_issues(self, rule: MacroRule) -> List[PrecedenceIssue]:
        issues: List[PrecedenceIssue] = []
        tokens = rule.tokens
        sig_count = sum(1 for t in tokens if t.significant)
        seen = set()
        for i, tok in enumerate(tokens):
            if tok.kind != "ident" or tok.text not in rule.occurrences or tok.text in seen:
                continue
            before, after = _significant_neighbours(tokens, i)
            if before is not None and before.text in ("#", "##"):
                continue
            if after is not None and after.text == "##":
                continue
            if sig_count == 1:
                continue
            opens = before is not None and before.text in ("(", ",")
            closes = after is not None and after.text in (")", ",")
            if not (opens and closes):
                seen.add(tok.text)
                issues.append(PrecedenceIssue(tok.text, "unparenthesized-parameter"))
        if _has_top_level_operator(tokens) and not _is_wrapped(tokens):
            issues.append(PrecedenceIssue(None, "unparenthesized-body"))
        return issues

    def propose_rewrite(self, rule: MacroRule) -> str:
        """Inline function template equivalent of *rule*."""
        body_tokens = self._strip_param_parens(rule)
        if _is_wrapped(body_tokens) and not _is_call_shaped(body_tokens):
            sig_idx = [i for i, t in enumerate(body_tokens) if t.significant]
            body_tokens = body_tokens[sig_idx[0] + 1:sig_idx[-1]]
        body = "".join(t.text for t in body_tokens).strip()
        params = ", ".join(f"const T& {p}" for p in rule.params)
        name = lower_camel(rule.name)
        if _is_call_shaped(body_tokens):
            signature, statement = f"inline void {name}({params})", f"{body};"
        else:
            signature, statement = f"inline T {name}({params})", f"return {body};"
        return f"template<typename T>\n{signature}\n{{\n    {statement}\n}}"

    @staticmethod
    def _strip_param_parens(rule: MacroRule) -> List[Token]:
        """Drop ``(`` ``)`` that wrap nothing but a single parameter."""
        tokens = list(rule.tokens)
        out: List[Token] = []
        i = 0
        while i < len(tokens):
            tok = tokens[i]
            if tok.text == "(":
                j = i + 1
                while j < len(tokens) and not tokens[j].significant:
                    j += 1
                k = j + 1
                while k < len(tokens) and not tokens[k].significant:
                    k += 1
                if (
                    j < len(tokens) and k < len(tokens)
                    and tokens[j].kind == "ident" and tokens[j].text in rule.occurrences
                    and tokens[k].text == ")"
                ):
                    out.append(tokens[j])
                    i = k + 1
                    continue
            out.append(tok)
            i += 1
        return out

    # ── call sites ─────────────────────────────────────────────

    def expand(self, rule: MacroRule, args: Sequence[str]) -> str:
        """Textual expansion of ``rule(args)``."""
        mapping = dict(zip(rule.params, (a.strip() for a in args)))
        out: List[str] = []
        stringize = False
        for tok in rule.tokens:
            if tok.text == "#":
                stringize = True
                continue
            if tok.kind == "ident" and tok.text in mapping:
                value = mapping[tok.text]
                out.append(f'"{value}"' if stringize else value)
            elif tok.text != "##":
                out.append(tok.text)
            if tok.significant:
                stringize = False
        return "".join(out).strip()

    def check_invocation(self, rule: MacroRule, args: Sequence[str]) -> List[InvocationHazard]:
        """Arguments with side effects bound to multiply-evaluated parameters."""
        hazards: List[InvocationHazard] = []
        if len(args) != len(rule.params):
            return hazards
        expansion = self.expand(rule, args)
        for param, arg in zip(rule.params, args):
            count = rule.occurrences.get(param, 0)
            if count > 1 and _SIDE_EFFECT.search(arg):
                hazards.append(InvocationHazard(param, arg.strip(), count, expansion))
        return hazards
