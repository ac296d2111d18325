"""Winner selection and variant performance for experiments.

Rates are compared as exact fractions so two variants with the same
engagements/impressions ratio always tie, whatever their magnitudes.
The tie goes to the variant that comes first in the input order.
"""
from dataclasses import dataclass
from fractions import Fraction
from typing import List, Optional, Sequence


@dataclass(frozen=True)
class VariantPerformance:
    """Derived metrics for one variant."""

    variant_id: object
    name: str
    impressions: int
    engagements: int
    conversions: int
    engagement_rate: float
    conversion_rate: float
    lift: Optional[float]  # % change in engagement rate vs. the first (control) variant
    is_leader: bool


def engagement_rate(impressions: int, engagements: int) -> Fraction:
    """Engagements per impression, 0 when nothing was delivered."""
    if impressions > 0:
        return Fraction(engagements, impressions)
    return Fraction(0)


def select_winner(variants: Sequence) -> Optional[object]:
    """
    Pick the variant with the highest engagement rate.

    A variant without impressions competes with a rate of 0, so it can
    still win a tie against later variants.

    Args:
        variants: Objects exposing ``id``, ``impressions`` and ``engagements``,
            in their stable order

    Returns:
        The winning variant's id, or None when no variant has impressions
    """
    if not any((v.impressions or 0) > 0 for v in variants):
        return None

    winner = None
    best_rate = None

    for variant in variants:
        rate = engagement_rate(variant.impressions or 0, variant.engagements or 0)
        if best_rate is None or rate > best_rate:
            winner = variant.id
            best_rate = rate

    return winner


def evaluate_variants(variants: Sequence) -> List[VariantPerformance]:
    """Compute per-variant rates, lift against the control and the current leader."""
    leader = select_winner(variants)
    control_rate = None
    results = []

    for index, variant in enumerate(variants):
        impressions = variant.impressions or 0
        engagements = variant.engagements or 0
        conversions = variant.conversions or 0

        rate = engagement_rate(impressions, engagements)
        conversion = Fraction(conversions, impressions) if impressions > 0 else Fraction(0)

        if index == 0:
            control_rate = rate
            lift = None
        elif control_rate:
            lift = round(float((rate - control_rate) / control_rate * 100), 2)
        else:
            lift = None

        results.append(VariantPerformance(
            variant_id=variant.id,
            name=variant.name,
            impressions=impressions,
            engagements=engagements,
            conversions=conversions,
            engagement_rate=round(float(rate), 6),
            conversion_rate=round(float(conversion), 6),
            lift=lift,
            is_leader=variant.id == leader,
        ))

    return results
