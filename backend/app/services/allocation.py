"""Traffic allocation validation for new experiments."""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Collection, List, Sequence
from uuid import UUID

from app.errors import ValidationError

TOTAL_ALLOCATION = Decimal("100")
ALLOCATION_TOLERANCE = Decimal("0.01")
MIN_VARIANTS = 2

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class VariantAllocation:
    """A variant proposal after normalization."""

    ad_creative_id: UUID
    name: str
    traffic_allocation: Decimal


def validate_allocation(
    variants: Sequence,
    campaign_creative_ids: Collection[UUID],
) -> List[VariantAllocation]:
    """
    Validate a proposed set of variants and fill in default allocations.

    Each item needs ``ad_creative_id``, ``name`` and ``traffic_allocation``
    attributes; a ``None`` allocation becomes an even share of 100.

    Args:
        variants: Variant proposals in input order
        campaign_creative_ids: Creatives owned by the experiment's campaign

    Returns:
        Normalized variants, same order as the input

    Raises:
        ValidationError: ``too_few_variants``, ``allocation_not_100`` or
            ``creative_not_in_campaign``
    """
    if len(variants) < MIN_VARIANTS:
        raise ValidationError(
            "too_few_variants",
            f"At least {MIN_VARIANTS} variants are required",
            details={"count": len(variants)},
        )

    default_share = (TOTAL_ALLOCATION / len(variants)).quantize(_CENT, rounding=ROUND_HALF_UP)

    normalized = [
        VariantAllocation(
            ad_creative_id=v.ad_creative_id,
            name=v.name,
            traffic_allocation=_as_decimal(v.traffic_allocation, default_share),
        )
        for v in variants
    ]

    total = sum((v.traffic_allocation for v in normalized), Decimal("0"))
    if abs(total - TOTAL_ALLOCATION) > ALLOCATION_TOLERANCE:
        raise ValidationError(
            "allocation_not_100",
            "Total traffic allocation must equal 100%",
            details={"totalAllocation": str(total)},
        )

    allowed = set(campaign_creative_ids)
    foreign = [str(v.ad_creative_id) for v in normalized if v.ad_creative_id not in allowed]
    if foreign:
        raise ValidationError(
            "creative_not_in_campaign",
            "Some ad creatives do not belong to this campaign",
            details={"adCreativeIds": foreign},
        )

    return normalized


def _as_decimal(value, default: Decimal) -> Decimal:
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    # str() keeps 33.3 as 33.3 instead of its binary expansion
    return Decimal(str(value))
