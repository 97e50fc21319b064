"""Turn a raw Ofcom mobile row into per-operator coverage."""

from __future__ import annotations

import math
from typing import Mapping

from mobile_checker.common.constants import COVERED_THRESHOLD, NOT_AVAILABLE, OPERATORS, POSTCODE_COLUMN
from mobile_checker.common.models import MobileSummary, OperatorCoverage, OverallCoverage

# Candidate columns per (operator, metric), in priority order. Ofcom has
# renamed columns between editions, e.g. ``ee_4g`` in one and ``ee4g`` in
# another, and some editions only publish indoor voice figures.
COVERAGE_COLUMNS: dict[tuple[str, str], tuple[str, ...]] = {
    ("EE", "voice"): ("ee_voice", "ee_voice_indoor"),
    ("EE", "4g"): ("ee_4g", "ee4g"),
    ("EE", "5g"): ("ee_5g", "ee5g"),
    ("O2", "voice"): ("o2_voice", "o2_voice_indoor"),
    ("O2", "4g"): ("o2_4g", "o24g"),
    ("O2", "5g"): ("o2_5g", "o25g"),
    ("Three", "voice"): ("three_voice", "three_voice_indoor"),
    ("Three", "4g"): ("three_4g", "three4g"),
    ("Three", "5g"): ("three_5g", "three5g"),
    ("Vodafone", "voice"): ("vodafone_voice", "vodafone_voice_indoor"),
    ("Vodafone", "4g"): ("vodafone_4g", "vodafone4g"),
    ("Vodafone", "5g"): ("vodafone_5g", "vodafone5g"),
}
ANY_OPERATOR_COLUMNS = ("any_operator", "any_coverage")


def resolve(row: Mapping[str, str], aliases: tuple[str, ...]) -> str | None:
    for key in aliases:
        value = row.get(key)
        if value not in (None, ""):
            return value
    return None


def parse_fraction(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        fraction = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(fraction):
        return None
    return fraction


def is_covered(value: str | None) -> bool:
    fraction = parse_fraction(value)
    return fraction is not None and fraction >= COVERED_THRESHOLD


def display_percentage(value: str | None) -> str:
    fraction = parse_fraction(value)
    if fraction is None:
        return NOT_AVAILABLE
    return f"{fraction * 100:.0f}%"


def _operator_coverage(row: Mapping[str, str], operator: str) -> OperatorCoverage:
    voice = resolve(row, COVERAGE_COLUMNS[(operator, "voice")])
    four_g = resolve(row, COVERAGE_COLUMNS[(operator, "4g")])
    five_g = resolve(row, COVERAGE_COLUMNS[(operator, "5g")])
    return OperatorCoverage(
        name=operator,
        voice=display_percentage(voice),
        four_g=display_percentage(four_g),
        five_g=display_percentage(five_g),
        has_voice=is_covered(voice),
        has_four_g=is_covered(four_g),
        has_five_g=is_covered(five_g),
    )


def interpret(row: Mapping[str, str]) -> MobileSummary:
    """Build a ``MobileSummary`` for one dataset row.

    Always returns the four operators in ``OPERATORS`` order, whatever columns
    the row carries. Overall 4G/5G counts are taken from the returned operator
    list.
    """
    operators = [_operator_coverage(row, operator) for operator in OPERATORS]
    return MobileSummary(
        postcode=row.get(POSTCODE_COLUMN, ""),
        operators=operators,
        overall=OverallCoverage(
            any_operator=display_percentage(resolve(row, ANY_OPERATOR_COLUMNS)),
            four_g_count=sum(1 for op in operators if op.has_four_g),
            five_g_count=sum(1 for op in operators if op.has_five_g),
        ),
    )
