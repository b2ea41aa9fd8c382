"""
Purchase Aggregator - per-site cost summaries over the usage ledger.

Pure functions over joined usage records; recomputed on every read.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .stores import UsageRecord

ZERO = Decimal('0')


@dataclass(frozen=True)
class PurchaseLine:
    product_name: str
    quantity: Decimal
    rate_per_unit: Decimal
    unit: str
    total_cost: Decimal


@dataclass
class SiteSummary:
    """Purchases for one site, in ledger order, with the site total."""
    site_id: int
    site_name: str
    purchases: List[PurchaseLine] = field(default_factory=list)
    total_site_cost: Decimal = ZERO


def aggregate_by_site(records: Iterable[UsageRecord]) -> List[SiteSummary]:
    """
    Group usage records by site.

    Sites appear in the order their first record appears; each site's lines
    keep input order. Sites with no records get no summary.
    """
    summaries: Dict[int, SiteSummary] = {}
    for record in records:
        summary = summaries.get(record.site_id)
        if summary is None:
            summary = SiteSummary(site_id=record.site_id, site_name=record.site_name)
            summaries[record.site_id] = summary

        line_cost = record.quantity_used * record.rate_per_unit
        summary.purchases.append(PurchaseLine(
            product_name=record.product_name,
            quantity=record.quantity_used,
            rate_per_unit=record.rate_per_unit,
            unit=record.unit,
            total_cost=line_cost
        ))
        summary.total_site_cost += line_cost

    return list(summaries.values())


def grand_total(summaries: Iterable[SiteSummary]) -> Decimal:
    return sum((summary.total_site_cost for summary in summaries), ZERO)


def filter_by_site(summaries: List[SiteSummary], site_id=None) -> List[SiteSummary]:
    """Restrict summaries to one site; ``None`` or ``'all'`` keeps every site."""
    if site_id is None or site_id == 'all':
        return list(summaries)
    return [summary for summary in summaries if str(summary.site_id) == str(site_id)]


def site_usage_total(records: Iterable[UsageRecord]) -> Decimal:
    """Total cost of a list of usage records."""
    return sum((record.total_cost for record in records), ZERO)


def summary_to_dict(summary: SiteSummary) -> Dict:
    return {
        'site_id': summary.site_id,
        'site_name': summary.site_name,
        'total_site_cost': str(summary.total_site_cost),
        'purchases': [
            {
                'product_name': line.product_name,
                'quantity': str(line.quantity),
                'unit': line.unit,
                'rate_per_unit': str(line.rate_per_unit),
                'total_cost': str(line.total_cost),
            }
            for line in summary.purchases
        ],
    }


def build_purchase_summary(records: Iterable[UsageRecord], site_id: Optional[str] = None) -> Dict:
    """Aggregate, filter and total records into an API payload."""
    summaries = filter_by_site(aggregate_by_site(records), site_id)
    return {
        'site_id': site_id or 'all',
        'sites': [summary_to_dict(summary) for summary in summaries],
        'grand_total': str(grand_total(summaries)),
    }
