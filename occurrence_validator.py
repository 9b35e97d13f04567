#!/usr/bin/env python3
"""
Occurrence Validator - Post-pass comparison of counted occurrences with bounds.

Runs once per scope, after every node of the scope has been tracked, so a
minimum can still be satisfied by a later sibling. Each configuration's
bounds are checked exactly once.
"""

from typing import Iterable, List, NamedTuple, Optional

from config_model import BlockConfig
from rule_primitives import resolve_severity
from validation_context import ValidationContext
from validation_result import ValidationMessage


class BoundViolation(NamedTuple):
    constraint: str   # "min", "max" or "exact"
    bound: int


def check_bounds(count: int, minimum: Optional[int] = None, maximum: Optional[int] = None,
                 exact: Optional[int] = None) -> Optional[BoundViolation]:
    """
    Compare a final count with occurrence bounds.

    Example:
        >>> check_bounds(2, maximum=1)
        BoundViolation(constraint='max', bound=1)
        >>> check_bounds(1, minimum=1, maximum=1) is None
        True
    """
    if exact is not None and count != exact:
        return BoundViolation("exact", exact)
    if minimum is not None and count < minimum:
        return BoundViolation("min", minimum)
    if maximum is not None and count > maximum:
        return BoundViolation("max", maximum)
    return None


_BLOCK_TEXT = {
    "min": ("Too few occurrences of {name}", "At least {bound} occurrences"),
    "max": ("Too many occurrences of {name}", "At most {bound} occurrences"),
    "exact": ("Wrong number of occurrences of {name}", "Exactly {bound} occurrences"),
}


def validate_block_occurrences(context: ValidationContext, configs: Iterable[BlockConfig]) -> List[ValidationMessage]:
    """
    Check the occurrence bounds of every block rule of a section.

    Args:
        context: Context the section's blocks were tracked in
        configs: Block rules of the section

    Returns:
        One message per rule whose bounds are violated, located at the section
    """
    messages = []
    for config in configs:
        occurrence = config.occurrence
        if occurrence is None:
            continue
        count = context.occurrence_count(config)
        violation = check_bounds(count, occurrence.min, occurrence.max, occurrence.exact)
        if violation is None:
            continue
        text, expected = _BLOCK_TEXT[violation.constraint]
        messages.append(ValidationMessage(
            severity=resolve_severity(occurrence.severity, config.severity),
            rule_id=f"block.occurrences.{violation.constraint}",
            message=text.format(name=context.block_name(config)),
            location=context.scope_location(),
            actual_value=str(count),
            expected_value=expected.format(bound=violation.bound),
        ))
    return messages
