"""
Family security gap calculator.

Amounts are in the same unit the client enters (typically 萬 / 10k TWD).
All functions are total: missing or negative inputs count as zero, and a
negative gap is a surplus, not an error.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Optional, Union

Number = Union[int, float]

MONTHS_PER_YEAR = 12

# Recurring categories: monthly amount x years
MONTHLY_NEED_CATEGORIES = (
    "livingExpense",
    "housingExpense",
    "childExpense",
    "parentExpense",
    "otherExpense",
)
# Paid once
LUMP_SUM_CATEGORY = "finalExpense"
COVERAGE_FIELDS = ("laborInsurance", "groupInsurance", "commercialInsurance")


def _non_negative(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number or number < 0:  # NaN or negative
        return 0.0
    return number


def _item_value(item: Any, key: str) -> Any:
    if item is None:
        return None
    if isinstance(item, Mapping):
        return item.get(key)
    return getattr(item, key, None)


def monthly_contribution(item: Any) -> float:
    """monthly amount x years x 12 for one recurring need item"""
    amount = _non_negative(_item_value(item, "amount"))
    years = _non_negative(_item_value(item, "years"))
    return amount * years * MONTHS_PER_YEAR


def total_need(items: Optional[Iterable[Any]], lump_sum: Optional[Number] = None) -> float:
    total = sum(monthly_contribution(item) for item in (items or ()))
    return total + _non_negative(lump_sum)


def total_coverage(
    labor_insurance: Optional[Number] = None,
    group_insurance: Optional[Number] = None,
    commercial_insurance: Optional[Number] = None,
) -> float:
    return (
        _non_negative(labor_insurance)
        + _non_negative(group_insurance)
        + _non_negative(commercial_insurance)
    )


def gap(need: Optional[Number], coverage: Optional[Number], liquid_assets: Optional[Number] = None) -> float:
    return _non_negative(need) - _non_negative(coverage) - _non_negative(liquid_assets)


def summarize_family_security(data: Mapping[str, Any]) -> dict:
    """Compute need, coverage and gap from a family-security step payload"""
    items = [data.get(key) for key in MONTHLY_NEED_CATEGORIES]
    # The lump-sum category may arrive as {"amount": x, "years": y}; years are ignored
    lump = data.get(LUMP_SUM_CATEGORY)
    lump_sum = _item_value(lump, "amount") if lump is not None and not isinstance(lump, (int, float)) else lump

    need = total_need(items, lump_sum)
    coverage = total_coverage(*(data.get(field) for field in COVERAGE_FIELDS))
    return {
        "total_need": need,
        "total_coverage": coverage,
        "gap": gap(need, coverage, data.get("liquidAssets")),
    }
