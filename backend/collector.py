"""
Requirement collector.

Builds every component in probe mode and gathers the requirements it
declares. Probe construction receives an empty resource view and no
deployment scope; components are required (not checked) to stay free of
external side effects here because no concrete resource exists yet.
"""

import logging
from collections.abc import Mapping
from typing import Iterable

from backend.definition import ComponentDefinition, ConstructionContext, ConstructionMode
from backend.errors import BackendError, InvalidRequirementError
from backend.requirements import ResourceRequirement, SourcedRequirement
from backend.resource_map import ScopedResources

__all__ = ["collect_requirements", "validate_requirement"]

logger = logging.getLogger(__name__)


def validate_requirement(requirement: object, component_id: str) -> ResourceRequirement:
    """
    Check the shape of a declared requirement.

    Raises:
        InvalidRequirementError: If it is not a ``ResourceRequirement``, has an
            empty type or key, a non-mapping config, or a non-integer priority.
    """
    if not isinstance(requirement, ResourceRequirement):
        raise InvalidRequirementError(
            f"expected ResourceRequirement, got {type(requirement).__name__}",
            component_id=component_id,
        )
    resource_type = requirement.resource_type
    requirement_key = requirement.requirement_key
    if not isinstance(resource_type, str) or not isinstance(requirement_key, str):
        raise InvalidRequirementError(
            "resource_type and requirement_key must be strings, got "
            f"{type(resource_type).__name__} and {type(requirement_key).__name__}",
            component_id=component_id,
        )
    if not resource_type:
        raise InvalidRequirementError(
            "requirement must have a resource_type",
            component_id=component_id,
            requirement_key=requirement_key,
        )
    if ":" in resource_type:
        raise InvalidRequirementError(
            f'resource_type "{resource_type}" must not contain ":"',
            component_id=component_id,
            resource_type=resource_type,
            requirement_key=requirement_key,
        )
    if not requirement_key:
        raise InvalidRequirementError(
            "requirement must have a requirement_key",
            component_id=component_id,
            resource_type=resource_type,
        )
    if not isinstance(requirement.config, Mapping):
        raise InvalidRequirementError(
            "requirement config must be a mapping",
            component_id=component_id,
            resource_type=resource_type,
            requirement_key=requirement_key,
        )
    if isinstance(requirement.priority, bool) or not isinstance(requirement.priority, int):
        raise InvalidRequirementError(
            "requirement priority must be an integer",
            component_id=component_id,
            resource_type=resource_type,
            requirement_key=requirement_key,
        )
    return requirement


def collect_requirements(
    definitions: Iterable[ComponentDefinition],
    backend_id: str,
) -> tuple[list[SourcedRequirement], list[BackendError]]:
    """
    Probe each definition and return its sourced requirements.

    Collection does not stop at the first broken component: every failure is
    returned alongside the requirements gathered from the others.

    Returns:
        ``(requirements, errors)``, requirements in global declaration order.
    """
    collected: list[SourcedRequirement] = []
    errors: list[BackendError] = []
    for definition in definitions:
        component_id = definition.component_id
        context = ConstructionContext(
            mode=ConstructionMode.PROBE,
            backend_id=backend_id,
            resources=ScopedResources.empty(component_id),
        )
        try:
            declared = list(definition.build(context).get_requirements())
        except BackendError as error:
            errors.append(error)
            continue
        except Exception as error:
            errors.append(
                InvalidRequirementError(
                    f"failed to declare requirements: {error}",
                    component_id=component_id,
                )
            )
            continue

        for requirement in declared:
            try:
                valid = validate_requirement(requirement, component_id)
            except InvalidRequirementError as error:
                errors.append(error)
                continue
            collected.append(
                SourcedRequirement(
                    requirement=valid,
                    component_id=component_id,
                    order=len(collected),
                )
            )
        logger.debug(
            "Collected %d requirement(s) from component %s",
            len(declared),
            component_id,
        )
    return collected, errors
