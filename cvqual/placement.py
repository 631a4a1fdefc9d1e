"""
Class-scope constant placement rules.

Decision table (per constant)::

    type                     in-class value  address taken  requirement
    ---------------------------------------------------------------------------
    integral/literal         yes             no             no definition required
    integral/literal         yes             yes            definition, no initializer
    integral/literal         no              any            definition with initializer
    non-integral/non-literal any             any            in-class value forbidden;
                                                            definition with initializer

Enumerators never need a definition and have no address.

Each mismatch between the requirement and what the unit actually contains
is one :class:`PlacementViolation` naming the missing or forbidden
artifact.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from cvqual.declarations import ClassConstant, TypeCategory
from cvqual.nodes import ConstantDefinition, ConstantForm, Loc

logger = logging.getLogger(__name__)


class PlacementRequirement(Enum):
    NO_DEFINITION_REQUIRED = "no-definition-required"
    DEFINITION_WITHOUT_INITIALIZER = "definition-without-initializer"
    DEFINITION_WITH_INITIALIZER = "definition-with-initializer"
    IN_CLASS_VALUE_FORBIDDEN = "in-class-value-forbidden"

    @property
    def needs_definition(self) -> bool:
        return self is not PlacementRequirement.NO_DEFINITION_REQUIRED

    @property
    def definition_initializer(self) -> Optional[bool]:
        """Whether the out-of-class definition must carry the value.

        ``None`` when no definition is required (an optional definition
        must then omit the value).
        """
        if self is PlacementRequirement.NO_DEFINITION_REQUIRED:
            return None
        return self is not PlacementRequirement.DEFINITION_WITHOUT_INITIALIZER


class PlacementArtifact(Enum):
    MISSING_DEFINITION = "missing-definition"
    REDUNDANT_INITIALIZER = "redundant-initializer"
    MISSING_INITIALIZER = "missing-initializer"
    FORBIDDEN_IN_CLASS_INITIALIZER = "forbidden-in-class-initializer"
    DUPLICATE_DEFINITION = "duplicate-definition"
    ADDRESS_OF_ENUMERATOR = "address-of-enumerator"
    DEFINITION_OF_UNDECLARED = "definition-of-undeclared"


@dataclass(frozen=True)
class PlacementViolation:
    artifact: PlacementArtifact
    constant: str
    location: Optional[Loc] = None
    detail: str = ""


@dataclass
class PlacementResult:
    constant: ClassConstant
    requirement: PlacementRequirement
    violations: List[PlacementViolation] = field(default_factory=list)
    recommend_enum: bool = False

    @property
    def legal(self) -> bool:
        return not self.violations

    @property
    def artifacts(self) -> Tuple[PlacementArtifact, ...]:
        return tuple(v.artifact for v in self.violations)


def requirement_for(constant: ClassConstant) -> PlacementRequirement:
    if constant.form is ConstantForm.ENUMERATOR:
        return PlacementRequirement.NO_DEFINITION_REQUIRED
    if constant.category is TypeCategory.NON_INTEGRAL_OR_NON_LITERAL:
        return PlacementRequirement.IN_CLASS_VALUE_FORBIDDEN
    if not constant.has_in_class_initializer:
        return PlacementRequirement.DEFINITION_WITH_INITIALIZER
    if constant.address_taken:
        return PlacementRequirement.DEFINITION_WITHOUT_INITIALIZER
    return PlacementRequirement.NO_DEFINITION_REQUIRED


class ConstantPlacementValidator:
    """Checks one class constant against its out-of-class definitions."""

    def validate(
        self,
        constant: ClassConstant,
        definitions: Sequence[ConstantDefinition] = (),
    ) -> PlacementResult:
        requirement = requirement_for(constant)
        result = PlacementResult(constant=constant, requirement=requirement)
        name = constant.qualified_name

        def violate(artifact: PlacementArtifact, loc: Optional[Loc], detail: str = "") -> None:
            result.violations.append(PlacementViolation(artifact, name, loc, detail))

        if constant.form is ConstantForm.ENUMERATOR:
            for site in constant.address_sites:
                violate(PlacementArtifact.ADDRESS_OF_ENUMERATOR, site)
            for d in definitions:
                violate(PlacementArtifact.DEFINITION_OF_UNDECLARED, d.loc, "enumerator")
            return result

        if (
            requirement is PlacementRequirement.IN_CLASS_VALUE_FORBIDDEN
            and constant.has_in_class_initializer
        ):
            violate(PlacementArtifact.FORBIDDEN_IN_CLASS_INITIALIZER, constant.loc)

        if requirement.needs_definition and not definitions:
            detail = "address taken" if constant.address_taken else ""
            site = constant.address_sites[0] if constant.address_sites else constant.loc
            violate(PlacementArtifact.MISSING_DEFINITION, site, detail)

        for extra in definitions[1:]:
            violate(PlacementArtifact.DUPLICATE_DEFINITION, extra.loc)

        if definitions:
            definition = definitions[0]
            has_value = definition.initializer is not None
            wants_value = requirement.definition_initializer
            if wants_value and not has_value:
                violate(PlacementArtifact.MISSING_INITIALIZER, definition.loc)
            elif not wants_value and has_value:
                violate(PlacementArtifact.REDUNDANT_INITIALIZER, definition.loc)

        result.recommend_enum = bool(constant.array_bound_sites) and (
            requirement in (
                PlacementRequirement.IN_CLASS_VALUE_FORBIDDEN,
                PlacementRequirement.DEFINITION_WITH_INITIALIZER,
            )
        )
        logger.debug(
            "%s: %s, %d violation(s)", name, requirement.value, len(result.violations)
        )
        return result

    def orphan_definition(self, definition: ConstantDefinition) -> PlacementViolation:
        """Out-of-class definition with no matching in-class declaration."""
        return PlacementViolation(
            PlacementArtifact.DEFINITION_OF_UNDECLARED,
            f"{definition.class_name}::{definition.name}",
            definition.loc,
        )
