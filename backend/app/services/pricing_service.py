# Overview: Price-option resolution and currency formatting for quotations.

"""
Price Option Resolution

Quotations carry up to three supplier price options in flattened columns.
This module rebuilds them into an ordered list for display and checkout,
formats prices the way the dashboard shows them, and parses the formatted
strings back into numbers for payment amounts.

Option N is present iff title_optionN is non-empty. Slot order is 1 -> 3.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from ..models.quotations import Quotation, OPTION_SLOTS

NOT_AVAILABLE = "N/A"
DEFAULT_OPTION_IMAGE = "/images/product/product-01.jpg"


class PriceParseError(ValueError):
    """Raised when a formatted price string does not contain a number."""


@dataclass(frozen=True)
class PriceOption:
    id: str
    price: str
    supplier: str
    model_name: str
    delivery_time: str
    description: str | None
    model_image: str
    numeric_price: Decimal | None

    @property
    def slot(self) -> int:
        return int(self.id)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["numeric_price"] = float(self.numeric_price) if self.numeric_price is not None else None
        return data


# =============================================================================
# FORMATTING / PARSING
# =============================================================================

def _group(value: Decimal, places: int, strip_zeros: bool) -> str:
    quant = Decimal(1).scaleb(-places)
    rounded = value.quantize(quant, rounding=ROUND_HALF_UP)
    text = f"{rounded:,.{places}f}"
    if strip_zeros and "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_price(value) -> str:
    """
    Format a numeric price as "$" + en-US grouped number.

    en-US grouping: thousands separators, at most three
    fraction digits, no trailing zeros. None or zero -> "N/A".
    """
    if value is None:
        return NOT_AVAILABLE
    amount = Decimal(str(value))
    if amount == 0:
        return NOT_AVAILABLE
    return f"${_group(amount, 3, strip_zeros=True)}"


def format_amount(value) -> str:
    """Format with exactly two decimals, e.g. "$1,234.50"."""
    return f"${_group(Decimal(str(value)), 2, strip_zeros=False)}"


def parse_price(text) -> Decimal:
    """
    Parse a formatted price back to a number by stripping "$" and ",".

    Raises PriceParseError for anything that is not a finite number
    (including "N/A").
    """
    if text is None:
        raise PriceParseError("Price is missing")
    if isinstance(text, (int, float, Decimal)) and not isinstance(text, bool):
        cleaned = str(text)
    else:
        cleaned = str(text).replace("$", "").replace(",", "").strip()
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise PriceParseError(f"Invalid price format: {text!r}")
    if not amount.is_finite():
        raise PriceParseError(f"Invalid price format: {text!r}")
    return amount


# =============================================================================
# RESOLUTION
# =============================================================================

def _is_present(title) -> bool:
    return bool(title and str(title).strip())


def has_price_options(quotation: Quotation) -> bool:
    """False when all three option titles are empty (checkout not offered)."""
    return any(_is_present(quotation.option_field(slot, "title")) for slot in OPTION_SLOTS)


def resolve_price_options(quotation: Quotation) -> list[PriceOption]:
    """Build the 0-3 present price options of a quotation, in slot order."""
    options = []
    for slot in OPTION_SLOTS:
        title = quotation.option_field(slot, "title")
        if not _is_present(title):
            continue
        title = str(title).strip()
        raw_price = quotation.option_field(slot, "total_price")
        numeric = Decimal(str(raw_price)) if raw_price is not None else None
        price = format_price(numeric)
        options.append(PriceOption(
            id=str(slot),
            price=price,
            supplier=title,
            model_name=title,
            delivery_time=quotation.option_field(slot, "delivery_time") or NOT_AVAILABLE,
            description=quotation.option_field(slot, "description"),
            model_image=quotation.option_field(slot, "image") or DEFAULT_OPTION_IMAGE,
            numeric_price=numeric if price != NOT_AVAILABLE else None,
        ))
    return options


def find_option(options: list[PriceOption], slot) -> PriceOption | None:
    """Option occupying a 1-based slot, or None."""
    try:
        wanted = str(int(slot))
    except (TypeError, ValueError):
        return None
    for option in options:
        if option.id == wanted:
            return option
    return None


def average_price(options: list[PriceOption]) -> str | None:
    """Mean of the numeric option prices, two decimals; None if there are none."""
    prices = [o.numeric_price for o in options if o.numeric_price is not None]
    if not prices:
        return None
    return format_amount(sum(prices) / len(prices))


def selected_price(quotation: Quotation, options: list[PriceOption] | None = None) -> str:
    """Price string of the selected option, or "N/A" when unset/out of range."""
    if options is None:
        options = resolve_price_options(quotation)
    if not quotation.selected_option:
        return NOT_AVAILABLE
    option = find_option(options, quotation.selected_option)
    return option.price if option else NOT_AVAILABLE


def display_price(quotation: Quotation, options: list[PriceOption] | None = None) -> str | None:
    """Selected price if resolvable, else the average price, else None."""
    if options is None:
        options = resolve_price_options(quotation)
    if quotation.selected_option:
        price = selected_price(quotation, options)
        if price != NOT_AVAILABLE:
            return price
    return average_price(options)
