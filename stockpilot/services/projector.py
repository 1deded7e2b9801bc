"""Derived views of catalog, inventory and sales lists.

Everything here is a pure function of its inputs: the source lists are
never mutated and the results are recomputed on every call.
"""

import math
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Sequence, Tuple, TypeVar, Union

from ..models.product import Product, ProductVariant, StockStatus
from ..models.returns import SaleItem

ALL_CATEGORIES = "all"

T = TypeVar("T")

# A collapsed price range: one amount when every variant costs the same.
PriceRange = Union[Decimal, Tuple[Decimal, Decimal]]


@dataclass(frozen=True)
class ViewFilters:
    """Search box and category dropdown of a list screen."""

    search_text: str = ""
    category: str = ALL_CATEGORIES


@dataclass(frozen=True)
class DerivedRow:
    """Read-only projection of one product for display."""

    product_id: str
    name: str
    brand: str
    category: str
    sku: str
    variant_count: int
    stock_total: int
    price_range: Optional[PriceRange]
    original_price_range: Optional[PriceRange]
    status: StockStatus


@dataclass(frozen=True)
class ProjectedView:
    """One page of derived rows plus the page count of the filtered set."""

    rows: List[Any] = field(default_factory=list)
    total_pages: int = 0
    total_items: int = 0
    page: int = 1


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def classify_stock(stock_total: int, threshold: Optional[float]) -> StockStatus:
    """
    Out of stock at zero, low below ``threshold``, in stock otherwise.

    A missing threshold never triggers low stock.
    """
    if stock_total == 0:
        return StockStatus.OUT_OF_STOCK
    if threshold is not None and stock_total < threshold:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def effective_threshold(variants: Iterable[ProductVariant]) -> Optional[float]:
    """Smallest low-stock threshold across variants; missing ones count as +inf."""
    lowest = min(
        (v.low_stock_quantity if v.low_stock_quantity is not None else math.inf for v in variants),
        default=math.inf,
    )
    return None if lowest == math.inf else lowest


def variant_status(variant: ProductVariant) -> StockStatus:
    return classify_stock(variant.quantity, variant.low_stock_quantity)


def restock_progress(variant: ProductVariant) -> int:
    """Current quantity as a percentage of the low-stock threshold, capped at 100."""
    threshold = variant.low_stock_quantity
    if not threshold:
        return 100
    return min(100, int(variant.quantity * 100 / threshold))


def collapse_range(values: Sequence[Decimal]) -> Optional[PriceRange]:
    """``(min, max)`` of ``values``, or the single amount when they are all equal."""
    if not values:
        return None
    low, high = min(values), max(values)
    if low == high:
        return low
    return (low, high)


def format_price_range(value: Optional[PriceRange], symbol: str = "") -> str:
    if value is None:
        return "—"
    if isinstance(value, tuple):
        low, high = value
        return f"{symbol}{low:.2f} - {symbol}{high:.2f}"
    return f"{symbol}{value:.2f}"


def derive_row(product: Product) -> DerivedRow:
    variants = product.variants
    stock_total = sum(v.quantity for v in variants)
    return DerivedRow(
        product_id=product.id,
        name=product.name,
        brand=product.brand,
        category=product.category,
        sku=variants[0].sku if variants else "",
        variant_count=len(variants),
        stock_total=stock_total,
        price_range=collapse_range([v.final_price for v in variants]),
        original_price_range=collapse_range([v.original_price for v in variants]),
        status=classify_stock(stock_total, effective_threshold(variants)),
    )


# ---------------------------------------------------------------------------
# Filtering and pagination
# ---------------------------------------------------------------------------

def matches(product: Product, filters: ViewFilters) -> bool:
    needle = filters.search_text.strip().lower()
    first_sku = product.variants[0].sku if product.variants else ""
    matches_search = not needle or any(
        needle in (text or "").lower() for text in (product.name, product.brand, first_sku)
    )
    matches_category = (
        filters.category == ALL_CATEGORIES
        or filters.category == product.category
    )
    return matches_search and matches_category


def total_pages_for(count: int, page_size: int) -> int:
    if page_size < 1:
        raise ValueError("page_size must be a positive integer")
    return math.ceil(count / page_size)


def paginate(items: Sequence[T], page: int, page_size: int) -> ProjectedView:
    """Slice one 1-indexed page; a page outside the range is simply empty."""
    total_pages = total_pages_for(len(items), page_size)
    if page < 1:
        rows: List[T] = []
    else:
        start = (page - 1) * page_size
        rows = list(items[start:start + page_size])
    return ProjectedView(rows=rows, total_pages=total_pages, total_items=len(items), page=page)


def clamp_page(page: int, total_pages: int) -> int:
    """Bring ``page`` back into ``1..total_pages`` after the result set shrank."""
    return max(1, min(page, max(total_pages, 1)))


def project(
    entities: Sequence[Product],
    filters: Optional[ViewFilters] = None,
    page: int = 1,
    page_size: int = 10,
) -> ProjectedView:
    """
    Filter, classify and paginate products for a list screen.

    Args:
        entities: Products as fetched (left untouched)
        filters: Search text and category; defaults to everything
        page: 1-indexed page number
        page_size: Rows per page

    Returns:
        ProjectedView of DerivedRow for the requested page
    """
    filters = filters or ViewFilters()
    filtered = [product for product in entities if matches(product, filters)]
    view = paginate(filtered, page, page_size)
    return ProjectedView(
        rows=[derive_row(product) for product in view.rows],
        total_pages=view.total_pages,
        total_items=view.total_items,
        page=page,
    )


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SalesSummary:
    items: List[SaleItem]
    total_revenue: Decimal


def summarize_sales(
    sale_items: Sequence[SaleItem],
    search_text: str = "",
    day: Optional[date] = None,
) -> SalesSummary:
    """Sale lines matching a product-name search and a calendar day, with revenue."""
    needle = search_text.strip().lower()
    selected = [
        item for item in sale_items
        if (not needle or needle in item.product_name.lower())
        and (day is None or (item.purchased_at is not None and item.purchased_at.date() == day))
    ]
    revenue = sum((item.total_price for item in selected), Decimal("0"))
    return SalesSummary(items=selected, total_revenue=revenue)
