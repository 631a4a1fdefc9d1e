"""
Per-unit driver.

Four phases, each walking the unit in source order:

1. declare   -- build the declaration table (DuplicateDeclaration,
                unmatched out-of-class definitions)
2. evaluate  -- initialisers, function bodies and usage statements through
                the expression evaluator and overload resolver
3. placement -- every class constant against its out-of-class definitions
4. macros    -- function-like macro definitions and their call sites

Diagnostics come out phase by phase, so identical input always produces
an identical sequence.  A fresh declaration table is built for every unit;
units share nothing and :func:`analyze_batch` may run them in separate
processes.
"""

from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field, replace
from itertools import repeat
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

from cvqual.config import AnalyzerConfig
from cvqual.declarations import (
    ClassConstant,
    DeclarationTable,
    DeclEntity,
    EntityKind,
    TypeCategory,
    is_integral_type,
    normalize_type,
)
from cvqual.errors import (
    CvqualError,
    Diagnostic,
    DiagnosticCollector,
    DiagnosticKind,
    ErrorNote,
    FrontendError,
    SuppressionManager,
)
from cvqual.evaluator import Annotation, EvaluationContext, ExpressionEvaluator
from cvqual.frontend import parse_unit
from cvqual.library import ensure_container, iterator_info
from cvqual.macros import MacroHazardDetector, MacroReport, MacroRule
from cvqual.nodes import (
    Block,
    ClassConstantDecl,
    ClassDecl,
    ConstantDefinition,
    ConstantForm,
    Declarator,
    EnumDecl,
    ExprStmt,
    FunctionDecl,
    Loc,
    MacroDef,
    Param,
    ReturnStmt,
    ScopedRef,
    TypeSpec,
    Unit,
    VarDecl,
    VarRef,
    walk,
)
from cvqual.overloads import OverloadResolver
from cvqual.placement import (
    ConstantPlacementValidator,
    PlacementArtifact,
    PlacementResult,
    PlacementViolation,
)
from cvqual.qualifiers import CONST, Qualifier

logger = logging.getLogger(__name__)

_PLACEMENT_MESSAGES = {
    PlacementArtifact.MISSING_DEFINITION: "{name} needs an out-of-class definition",
    PlacementArtifact.REDUNDANT_INITIALIZER:
        "definition of {name} repeats the value given in the class",
    PlacementArtifact.MISSING_INITIALIZER: "definition of {name} must supply the value",
    PlacementArtifact.FORBIDDEN_IN_CLASS_INITIALIZER:
        "{name} is not integral; its value cannot be given in the class",
    PlacementArtifact.DUPLICATE_DEFINITION: "{name} is defined more than once",
    PlacementArtifact.ADDRESS_OF_ENUMERATOR: "enumerator {name} has no address",
    PlacementArtifact.DEFINITION_OF_UNDECLARED:
        "{name} is defined but the class declares no such static member",
}


# ═══════════════════════════════════════════════════════════════════
#  Entity construction
# ═══════════════════════════════════════════════════════════════════

def variable_entity(
    type_spec: TypeSpec,
    declarator: Declarator,
    owner: Optional[str],
    node=None,
) -> DeclEntity:
    """Entity for an object/pointer/reference/iterator declaration."""
    type_name = normalize_type(type_spec.name)
    const = type_spec.const
    iterator = iterator_info(type_name)
    if iterator is not None:
        _, element, pointee_const = iterator
        kind = EntityKind.ITERATOR
        qualifier = Qualifier.pointer(pointee_const=pointee_const, pointer_const=const)
        type_name = element
    elif declarator.pointer:
        kind = EntityKind.POINTER
        qualifier = Qualifier.pointer(pointee_const=const, pointer_const=declarator.pointer_const)
    elif declarator.reference:
        kind, qualifier = EntityKind.REFERENCE, Qualifier.value(const)
    elif declarator.array_bound is not None:
        # an array behaves as a pointer that cannot be rebound
        kind = EntityKind.OBJECT
        qualifier = Qualifier.pointer(pointee_const=const, pointer_const=True)
    else:
        kind, qualifier = EntityKind.OBJECT, Qualifier.value(const)
    return DeclEntity(
        name=declarator.name,
        kind=kind,
        qualifier=qualifier,
        owner=owner,
        type_name=type_name,
        loc=declarator.loc,
        node=node,
    )


def param_spelling(param: Param) -> str:
    spelled = f"const {param.type.name}" if param.type.const else param.type.name
    if param.declarator.pointer:
        return spelled + "*"
    if param.declarator.reference:
        return spelled + "&"
    return spelled


def function_entity(fn: FunctionDecl, owner: Optional[str], kind: EntityKind) -> DeclEntity:
    type_name = normalize_type(fn.return_type.name)
    declarator = fn.return_declarator
    iterator = iterator_info(type_name)
    if iterator is not None:
        type_name = iterator[1]
        ret = Qualifier.pointer(pointee_const=iterator[2], pointer_const=fn.return_type.const)
    elif declarator.pointer:
        ret = Qualifier.pointer(
            pointee_const=fn.return_type.const, pointer_const=declarator.pointer_const
        )
    else:
        ret = Qualifier.value(fn.return_type.const)
    return DeclEntity(
        name=fn.name,
        kind=kind,
        owner=owner,
        type_name=type_name,
        is_const_qualified=fn.is_const,
        params=tuple(param_spelling(p) for p in fn.params),
        return_qualifier=ret,
        returns_reference=declarator.reference,
        loc=fn.loc,
        node=fn,
    )


# ═══════════════════════════════════════════════════════════════════
#  Results
# ═══════════════════════════════════════════════════════════════════

@dataclass
class AnalysisResult:
    """Everything one unit produced."""
    unit: str
    diagnostics: List[Diagnostic] = field(default_factory=list)
    annotations: List[Annotation] = field(default_factory=list)
    placements: List[PlacementResult] = field(default_factory=list)
    macro_reports: List[MacroReport] = field(default_factory=list)
    strips: List[Annotation] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(d.severity.is_error() for d in self.diagnostics)

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity.is_error())


@dataclass
class AnalysisContext:
    """State of one run over one unit."""
    unit: Unit
    config: AnalyzerConfig
    table: DeclarationTable
    collector: DiagnosticCollector
    evaluator: ExpressionEvaluator
    macros: Dict[str, MacroRule] = field(default_factory=dict)
    entities: Dict[int, DeclEntity] = field(default_factory=dict)
    owners: Dict[int, Optional[str]] = field(default_factory=dict)
    defined: Set[Tuple] = field(default_factory=set)
    annotations: List[Annotation] = field(default_factory=list)
    placements: List[PlacementResult] = field(default_factory=list)
    macro_reports: List[MacroReport] = field(default_factory=list)


def _sort_key(loc: Optional[Loc]) -> Tuple[int, int]:
    return (loc.line, loc.col) if loc is not None else (0, 0)


# ═══════════════════════════════════════════════════════════════════
#  Analyzer
# ═══════════════════════════════════════════════════════════════════

class Analyzer:
    """
    Runs all components over one :class:`Unit`.

    Usage::

        result = Analyzer(AnalyzerConfig()).analyze(parse_unit(text, "a.cpp"))
        for d in result.diagnostics:
            print(d.to_gcc_format())
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        *,
        suppression_manager: Optional[SuppressionManager] = None,
    ) -> None:
        self.config = config or AnalyzerConfig()
        self._suppression = suppression_manager
        self._resolver = OverloadResolver()
        self._validator = ConstantPlacementValidator()
        self._detector = MacroHazardDetector()

    def analyze(self, unit: Unit) -> AnalysisResult:
        suppression = self._suppression or self.config.make_suppressions()
        if unit.source:
            suppression.load_inline_suppressions_from_source(unit.source, unit.name)
        collector = DiagnosticCollector(
            suppression_manager=suppression,
            min_severity=self.config.severity_floor(),
            enabled=self.config.enabled_kinds(),
        )
        table = DeclarationTable()
        macros: Dict[str, MacroRule] = {}
        evaluator = ExpressionEvaluator(
            table, collector,
            resolver=self._resolver,
            macros=macros,
            max_depth=self.config.max_expression_depth,
        )
        ctx = AnalysisContext(
            unit=unit,
            config=self.config,
            table=table,
            collector=collector,
            evaluator=evaluator,
            macros=macros,
        )

        logger.info("analyzing %s (%d items)", unit.name, len(unit.items))
        self._phase1_declare(ctx)
        self._phase2_evaluate(ctx)
        self._phase3_placement(ctx)
        self._phase4_macros(ctx)
        logger.info("%s: %d diagnostic(s)", unit.name, len(collector))

        return AnalysisResult(
            unit=unit.name,
            diagnostics=collector.diagnostics,
            annotations=ctx.annotations,
            placements=ctx.placements,
            macro_reports=ctx.macro_reports,
            strips=list(evaluator.strips),
        )

    # ========================================================================
    # Phase 1: declarations
    # ========================================================================

    def _phase1_declare(self, ctx: AnalysisContext) -> None:
        for item in ctx.unit.items:
            if isinstance(item, MacroDef):
                self._declare_macro(ctx, item)
            elif isinstance(item, ClassDecl):
                self._declare_class(ctx, item)
            elif isinstance(item, FunctionDecl):
                if item.owner:
                    self._match_member_definition(ctx, item)
                else:
                    self._declare_free_function(ctx, item)
            elif isinstance(item, VarDecl):
                self._declare_variable(ctx, item, owner=None)
            elif isinstance(item, ConstantDefinition):
                ctx.table.add_definition(item)
            elif isinstance(item, EnumDecl):
                self._declare_global_enum(ctx, item)

    def _duplicate(self, ctx: AnalysisContext, entity: DeclEntity, previous: DeclEntity,
                   key: str = "conflicting-declaration") -> None:
        ctx.collector.report(
            DiagnosticKind.DUPLICATE_DECLARATION, key,
            entity=entity.qualified_name,
            location=entity.loc,
            message=f"'{entity.describe()}' conflicts with an earlier declaration",
            notes=[ErrorNote(f"previous declaration: {previous.describe()}", previous.loc)],
        )

    def _declare(self, ctx: AnalysisContext, entity: DeclEntity, scope=None) -> bool:
        conflict = ctx.table.declare(entity, scope)
        if conflict is not None:
            self._duplicate(ctx, entity, conflict)
            return False
        return True

    def _declare_macro(self, ctx: AnalysisContext, macro: MacroDef) -> None:
        rule = MacroRule.from_def(macro)
        previous = ctx.macros.get(macro.name)
        if previous is not None and (previous.params, previous.body) != (rule.params, rule.body):
            ctx.collector.report(
                DiagnosticKind.DUPLICATE_DECLARATION, "macro-redefined",
                entity=macro.name,
                location=macro.loc,
                notes=[ErrorNote("previous definition", previous.loc)],
            )
            return
        ctx.macros[macro.name] = rule

    def _declare_variable(self, ctx: AnalysisContext, decl: VarDecl, owner: Optional[str],
                          scope=None) -> Optional[DeclEntity]:
        ensure_container(ctx.table, decl.type.name, decl.loc)
        entity = variable_entity(decl.type, decl.declarator, owner, decl)
        if not self._declare(ctx, entity, scope):
            return None
        ctx.entities[id(decl)] = entity
        return entity

    def _declare_function(self, ctx: AnalysisContext, fn: FunctionDecl, owner: Optional[str],
                          kind: EntityKind) -> DeclEntity:
        ensure_container(ctx.table, fn.return_type.name, fn.loc)
        for p in fn.params:
            ensure_container(ctx.table, p.type.name, p.loc)
        return function_entity(fn, owner, kind)

    def _declare_class(self, ctx: AnalysisContext, decl: ClassDecl) -> None:
        conflict = ctx.table.declare_class(decl.name, decl.loc, decl)
        if conflict is not None:
            entity = DeclEntity(decl.name, EntityKind.CLASS, type_name=decl.name, loc=decl.loc)
            self._duplicate(ctx, entity, conflict)
            return
        for member in decl.members:
            if isinstance(member, VarDecl):
                self._declare_variable(ctx, member, owner=decl.name)
                if member.declarator.array_bound is not None:
                    self._note_array_bound(ctx, decl.name, member.declarator.array_bound)
            elif isinstance(member, FunctionDecl):
                entity = self._declare_function(ctx, member, decl.name, EntityKind.MEMBER_FUNCTION)
                if self._declare(ctx, entity):
                    ctx.entities[id(member)] = entity
                    ctx.owners[id(member)] = decl.name
                    if member.body is not None:
                        ctx.defined.add(entity.signature + (decl.name,))
            elif isinstance(member, ClassConstantDecl):
                self._declare_constant(ctx, decl.name, member)
            elif isinstance(member, EnumDecl):
                if member.name:
                    ctx.table.add_enum_type(member.name)
                    ctx.table.add_enum_type(f"{decl.name}::{member.name}")
                for enumerator in member.enumerators:
                    self._declare_constant(ctx, decl.name, enumerator)

    def _declare_constant(self, ctx: AnalysisContext, owner: str, decl: ClassConstantDecl) -> None:
        type_name = normalize_type(decl.type.name)
        entity = DeclEntity(
            name=decl.name,
            kind=EntityKind.CLASS_CONSTANT,
            qualifier=CONST,
            owner=owner,
            type_name=type_name,
            loc=decl.loc,
            node=decl,
        )
        if not self._declare(ctx, entity):
            return
        enumerator = decl.form is ConstantForm.ENUMERATOR
        integral = enumerator or is_integral_type(type_name, ctx.table.enum_types)
        ctx.table.add_constant(ClassConstant(
            name=decl.name,
            owner=owner,
            category=(
                TypeCategory.INTEGRAL_LITERAL_COMPATIBLE if integral
                else TypeCategory.NON_INTEGRAL_OR_NON_LITERAL
            ),
            has_in_class_initializer=enumerator or decl.initializer is not None,
            form=decl.form,
            type_name=type_name,
            loc=decl.loc,
        ))

    def _note_array_bound(self, ctx: AnalysisContext, owner: str, bound) -> None:
        for expr in walk(bound):
            constant = None
            if isinstance(expr, VarRef):
                constant = ctx.table.constant(owner, expr.name)
            elif isinstance(expr, ScopedRef):
                constant = ctx.table.constant(expr.scope, expr.name)
            if constant is not None:
                constant.array_bound_sites.append(expr.loc)

    def _declare_global_enum(self, ctx: AnalysisContext, decl: EnumDecl) -> None:
        if decl.name:
            ctx.table.add_enum_type(decl.name)
        for enumerator in decl.enumerators:
            self._declare(ctx, DeclEntity(
                name=enumerator.name,
                kind=EntityKind.OBJECT,
                qualifier=CONST,
                type_name=decl.name or "int",
                loc=enumerator.loc,
                node=enumerator,
            ))

    def _declare_free_function(self, ctx: AnalysisContext, fn: FunctionDecl) -> None:
        entity = self._declare_function(ctx, fn, None, EntityKind.FREE_FUNCTION)
        conflict = ctx.table.declare(entity)
        if conflict is None:
            ctx.entities[id(fn)] = entity
            if fn.body is not None:
                ctx.defined.add(entity.signature + (None,))
            return
        if not conflict.is_function:
            self._duplicate(ctx, entity, conflict)
            return
        # prototype + definition of the same function
        key = entity.signature + (None,)
        if fn.body is not None:
            if key in ctx.defined:
                self._duplicate(ctx, entity, conflict, "redefinition")
                return
            ctx.defined.add(key)
        ctx.entities[id(fn)] = conflict

    def _match_member_definition(self, ctx: AnalysisContext, fn: FunctionDecl) -> None:
        owner = fn.owner
        if not ctx.table.has_class(owner):
            ctx.collector.report(
                DiagnosticKind.NO_VIABLE_OVERLOAD, "not-a-class",
                entity=f"{owner}::{fn.name}",
                location=fn.loc,
            )
            return
        wanted = self._declare_function(ctx, fn, owner, EntityKind.MEMBER_FUNCTION)
        candidates = ctx.table.lookup_member(owner, fn.name)
        match = next((c for c in candidates if c.signature == wanted.signature), None)
        if match is None:
            ctx.collector.report(
                DiagnosticKind.NO_VIABLE_OVERLOAD, "no-matching-declaration",
                entity=wanted.qualified_name,
                location=fn.loc,
                message=f"'{wanted.describe()}' does not match any declaration in {owner}",
                notes=[ErrorNote(f"candidate: {c.describe()}", c.loc) for c in candidates],
            )
            return
        key = match.signature + (owner,)
        if fn.body is not None:
            if key in ctx.defined:
                self._duplicate(ctx, wanted, match, "redefinition")
                return
            ctx.defined.add(key)
        ctx.entities[id(fn)] = match
        ctx.owners[id(fn)] = owner

    # ========================================================================
    # Phase 2: expressions and bodies
    # ========================================================================

    def _phase2_evaluate(self, ctx: AnalysisContext) -> None:
        global_ctx = EvaluationContext(scope=ctx.table.global_scope)
        for item in ctx.unit.items:
            if isinstance(item, ClassDecl):
                for member in item.members:
                    if isinstance(member, FunctionDecl) and member.body is not None:
                        self._analyze_function(ctx, member)
            elif isinstance(item, FunctionDecl):
                if item.body is not None:
                    self._analyze_function(ctx, item)
            elif isinstance(item, VarDecl):
                entity = ctx.entities.get(id(item))
                if entity is not None and item.init is not None:
                    self._initialise(ctx, item, entity, global_ctx)
            elif isinstance(item, (ExprStmt, ReturnStmt, Block)):
                self._run_statements(ctx, [item], global_ctx)

    def _analyze_function(self, ctx: AnalysisContext, fn: FunctionDecl) -> None:
        entity = ctx.entities.get(id(fn))
        if entity is None:
            return
        class_name = ctx.owners.get(id(fn))
        cv = " const" if entity.is_const_qualified else ""
        scope_name = f"{entity.qualified_name}({', '.join(entity.params)}){cv}"
        scope = ctx.table.function_scope(scope_name, owner=class_name)
        for param in fn.params:
            if param.declarator.name:
                ensure_container(ctx.table, param.type.name, param.loc)
                self._declare(ctx, variable_entity(param.type, param.declarator, scope_name, param),
                              scope)
        logger.debug("analyzing body of %s", scope_name)
        ectx = EvaluationContext(
            scope=scope,
            class_name=class_name,
            this_const=fn.is_const,
            function=entity,
        )
        self._run_statements(ctx, fn.body.statements, ectx)

    def _initialise(self, ctx: AnalysisContext, decl: VarDecl, entity: DeclEntity,
                    ectx: EvaluationContext) -> None:
        value = ctx.evaluator.evaluate(decl.init, ectx)
        ctx.annotations.append(value)
        ctx.evaluator.check_binding(
            entity.qualifier,
            reference=decl.declarator.reference,
            value=value,
            entity=entity.qualified_name,
            location=decl.loc,
        )

    def _run_statements(self, ctx: AnalysisContext, statements: Sequence,
                        ectx: EvaluationContext) -> None:
        for stmt in statements:
            if isinstance(stmt, VarDecl):
                entity = self._declare_variable(ctx, stmt, owner=ectx.scope.name, scope=ectx.scope)
                if entity is not None and stmt.init is not None:
                    self._initialise(ctx, stmt, entity, ectx)
            elif isinstance(stmt, ExprStmt):
                ctx.annotations.append(ctx.evaluator.evaluate(stmt.expr, ectx))
            elif isinstance(stmt, ReturnStmt):
                self._return(ctx, stmt, ectx)
            elif isinstance(stmt, Block):
                nested = ctx.table.function_scope(
                    f"{ectx.scope.name}/{stmt.loc.line}:{stmt.loc.col}", parent=ectx.scope
                )
                self._run_statements(ctx, stmt.statements, replace(ectx, scope=nested))
            elif isinstance(stmt, ConstantDefinition):
                ctx.table.add_definition(stmt)

    def _return(self, ctx: AnalysisContext, stmt: ReturnStmt, ectx: EvaluationContext) -> None:
        if stmt.value is None:
            return
        value = ctx.evaluator.evaluate(stmt.value, ectx)
        ctx.annotations.append(value)
        fn = ectx.function
        if fn is None or not (fn.returns_reference or fn.return_qualifier.indirect):
            return
        ctx.evaluator.check_binding(
            fn.return_qualifier,
            reference=fn.returns_reference,
            value=value,
            entity=fn.qualified_name,
            location=stmt.loc,
            key="return-drops-const",
        )

    # ========================================================================
    # Phase 3: constant placement
    # ========================================================================

    def _phase3_placement(self, ctx: AnalysisContext) -> None:
        found: List[Tuple[PlacementViolation, str]] = []
        for constant in ctx.table.constants():
            result = self._validator.validate(
                constant, ctx.table.definitions_for(constant.owner, constant.name)
            )
            ctx.placements.append(result)
            for violation in result.violations:
                found.append((violation, self._placement_hint(result, violation)))
        for definition in ctx.table.definitions():
            if ctx.table.constant(definition.class_name, definition.name) is not None:
                continue
            members = ctx.table.lookup_member(definition.class_name, definition.name)
            if any(m.kind.is_variable for m in members):
                continue  # static data member definition
            found.append((self._validator.orphan_definition(definition), ""))

        for violation, hint in sorted(found, key=lambda f: _sort_key(f[0].location)):
            message = _PLACEMENT_MESSAGES[violation.artifact].format(name=violation.constant)
            if violation.detail:
                message += f" ({violation.detail})"
            ctx.collector.report(
                DiagnosticKind.ILLEGAL_CONSTANT_PLACEMENT, violation.artifact.value,
                entity=violation.constant,
                location=violation.location,
                message=message,
                hint=hint,
            )

    @staticmethod
    def _placement_hint(result: PlacementResult, violation: PlacementViolation) -> str:
        constant = result.constant
        if result.recommend_enum:
            return (
                f"use an enumerator (enum {{ {constant.name} = ... }};) "
                f"for a compile-time array bound"
            )
        artifact = violation.artifact
        if artifact is PlacementArtifact.MISSING_DEFINITION:
            value = " = ..." if result.requirement.definition_initializer else ""
            return f"add 'const {constant.type_name} {constant.qualified_name}{value};' outside the class"
        if artifact is PlacementArtifact.REDUNDANT_INITIALIZER:
            return "drop the value from the out-of-class definition"
        if artifact is PlacementArtifact.FORBIDDEN_IN_CLASS_INITIALIZER:
            return "move the value to the out-of-class definition"
        return ""

    # ========================================================================
    # Phase 4: macros
    # ========================================================================

    def _phase4_macros(self, ctx: AnalysisContext) -> None:
        found: List[Tuple[Loc, DiagnosticKind, str, dict]] = []
        for rule in ctx.macros.values():
            report = self._detector.analyze(rule)
            ctx.macro_reports.append(report)
            for param in report.multiple_evaluation:
                found.append((rule.loc, DiagnosticKind.MULTIPLE_EVALUATION_HAZARD,
                              "parameter-evaluated-multiple-times", dict(
                                  entity=param,
                                  message=f"macro {rule.name}: parameter '{param}' is evaluated "
                                          f"{rule.occurrences[param]} times",
                                  hint=report.proposal or "",
                              )))
            for issue in report.precedence:
                what = f"parameter '{issue.param}'" if issue.param else "body"
                found.append((rule.loc, DiagnosticKind.PRECEDENCE_HAZARD, issue.detail, dict(
                    entity=issue.param or rule.name,
                    message=f"macro {rule.name}: {what} is not parenthesized",
                    hint=report.proposal or "",
                )))

        for invocation, rule in ctx.evaluator.invocations:
            for hazard in self._detector.check_invocation(rule, invocation.args):
                found.append((invocation.loc, DiagnosticKind.MULTIPLE_EVALUATION_HAZARD,
                              "side-effecting-argument", dict(
                                  entity=hazard.param,
                                  message=f"argument '{hazard.argument}' of {rule.name} is "
                                          f"evaluated {hazard.evaluations} times",
                                  notes=[
                                      ErrorNote(f"expands to: {hazard.expansion}", invocation.loc),
                                      ErrorNote(f"macro {rule.name} defined here", rule.loc),
                                  ],
                              )))

        for loc, kind, key, extra in sorted(found, key=lambda f: _sort_key(f[0])):
            ctx.collector.report(kind, key, location=loc, **extra)


# ═══════════════════════════════════════════════════════════════════
#  Entry points
# ═══════════════════════════════════════════════════════════════════

def analyze_unit(unit: Unit, config: Optional[AnalyzerConfig] = None) -> AnalysisResult:
    return Analyzer(config).analyze(unit)


def analyze_source(
    text: str,
    filename: str = "<unit>",
    config: Optional[AnalyzerConfig] = None,
) -> AnalysisResult:
    """Parse and analyze source text.

    Text outside the supported subset yields a single ParseFailure
    diagnostic rather than an exception.
    """
    try:
        unit = parse_unit(text, filename)
    except FrontendError as exc:
        logger.info("%s: %s", filename, exc)
        return AnalysisResult(unit=filename, diagnostics=[exc.to_diagnostic()])
    return analyze_unit(unit, config)


def analyze_file(path: Union[str, Path], config: Optional[AnalyzerConfig] = None) -> AnalysisResult:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CvqualError(f"cannot read {path}: {exc.strerror}", cause=exc) from exc
    return analyze_source(text, str(path), config)


def analyze_batch(
    units: Sequence[Unit],
    config: Optional[AnalyzerConfig] = None,
    jobs: Optional[int] = None,
) -> List[AnalysisResult]:
    """Analyze independent units; results are in input order."""
    config = config or AnalyzerConfig()
    jobs = jobs or config.jobs
    if jobs <= 1 or len(units) <= 1:
        return [analyze_unit(u, config) for u in units]
    with ProcessPoolExecutor(max_workers=jobs) as pool:
        return list(pool.map(analyze_unit, units, repeat(config)))


def analyze_paths(
    paths: Sequence[Union[str, Path]],
    config: Optional[AnalyzerConfig] = None,
    jobs: Optional[int] = None,
) -> List[AnalysisResult]:
    """Like :func:`analyze_batch`, reading each path in its worker."""
    config = config or AnalyzerConfig()
    jobs = jobs or config.jobs
    if jobs <= 1 or len(paths) <= 1:
        return [analyze_file(p, config) for p in paths]
    with ProcessPoolExecutor(max_workers=jobs) as pool:
        return list(pool.map(analyze_file, [str(p) for p in paths], repeat(config)))
