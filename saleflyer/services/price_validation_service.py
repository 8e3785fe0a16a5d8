"""
Price validation for sale products.

Checks a proposed (original price, sale price, category) triple against the
per-category discount policy and produces the inline feedback shown next to
the product form: validity, an error, a warning and a pricing suggestion.
"""
import logging
import threading
from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Callable, Dict, Optional, Union

from saleflyer.exceptions import ValidationError
from saleflyer.models import ProductCategory

logger = logging.getLogger(__name__)

Number = Union[Decimal, float, int, str]

CENT = Decimal('0.01')
HUNDRED = Decimal('100')

# Largest amount a Numeric(10, 2) price column holds
MAX_AMOUNT = Decimal('99999999.99')

# Charm-pricing endings that don't trigger a suggestion
CHARM_ENDINGS = ('99', '95', '89', '49')

# Sale/original ratio under which a discount is flagged as a possible typo
AGGRESSIVE_RATIO = Decimal('0.2')

# Whole-dollar sale prices above this get a psychological pricing hint
WHOLE_DOLLAR_HINT_THRESHOLD = Decimal('20')


@dataclass(frozen=True)
class CategoryRules:
    min_discount: Decimal
    max_discount: Decimal
    min_price: Decimal
    max_price: Decimal


def _rules(min_discount, max_discount, min_price, max_price) -> CategoryRules:
    return CategoryRules(Decimal(min_discount), Decimal(max_discount), Decimal(min_price), Decimal(max_price))


CATEGORY_RULES: Dict[ProductCategory, CategoryRules] = {
    ProductCategory.SPIRITS: _rules(5, 50, 10, 2000),
    ProductCategory.WINE: _rules(10, 60, 8, 500),
    ProductCategory.BEER: _rules(5, 40, 1, 100),
    ProductCategory.COOLERS: _rules(5, 45, 2, 50),
    ProductCategory.MIXERS: _rules(10, 50, 1, 20),
    ProductCategory.ACCESSORIES: _rules(15, 70, 5, 200),
}


@dataclass(frozen=True)
class PriceValidationResult:
    is_valid: bool
    savings: str
    savings_percent: int
    error: Optional[str] = None
    warning: Optional[str] = None
    suggestion: Optional[str] = None

    def to_dict(self):
        return asdict(self)


def to_decimal(value: Number, field: str = 'price') -> Decimal:
    """Coerce form/JSON input to Decimal, rejecting anything non-numeric."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be a number")
    if not value.is_finite() or abs(value) > MAX_AMOUNT:
        raise ValidationError(f"{field} must be a number")
    return value


def to_category(value: Union[ProductCategory, str, None]) -> ProductCategory:
    if value is None or value == '':
        return ProductCategory.SPIRITS
    try:
        return ProductCategory(value)
    except ValueError:
        allowed = ', '.join(c.value for c in ProductCategory)
        raise ValidationError(f"Unknown category '{value}'. Allowed: {allowed}")


def _money(value: Decimal) -> str:
    return str(value.quantize(CENT, rounding=ROUND_HALF_UP))


def _fmt(value: Decimal) -> str:
    """Render policy numbers without a trailing .0 (e.g. 10, 2000)."""
    return format(value.normalize(), 'f')


def validate_price(original_price: Number, sale_price: Number, category='spirits') -> PriceValidationResult:
    """Validate a sale price against the category policy table."""
    original = to_decimal(original_price, 'original_price')
    sale = to_decimal(sale_price, 'sale_price')
    category = to_category(category)
    rules = CATEGORY_RULES[category]
    name = category.value

    savings = original - sale
    is_valid = True
    error = None
    warning = None
    suggestion = None

    # Basic validation rules
    if sale <= 0:
        is_valid = False
        error = 'Sale price must be greater than $0'
    elif sale >= original:
        is_valid = False
        error = 'Sale price must be lower than original price'
    elif original <= 0:
        is_valid = False
        error = 'Original price must be greater than $0'
    elif original < rules.min_price:
        is_valid = False
        error = f"{name} products should be priced at least ${_fmt(rules.min_price)}"
    elif original > rules.max_price:
        warning = f"Unusually high price for {name} (typically under ${_fmt(rules.max_price)})"

    if is_valid:
        discount = savings / original * HUNDRED

        if discount < rules.min_discount:
            target = original * (1 - rules.min_discount / HUNDRED)
            warning = f"Small discount for {name} - consider at least {_fmt(rules.min_discount)}% off"
            suggestion = f"Try ${_money(target)} for {_fmt(rules.min_discount)}% off"
        elif discount > rules.max_discount:
            target = original * (1 - rules.max_discount / HUNDRED)
            is_valid = False
            error = f"Discount too high for {name} (max {_fmt(rules.max_discount)}%)"
            suggestion = f"Maximum recommended: ${_money(target)}"

        if is_valid and rules.min_discount <= discount <= rules.max_discount:
            if _money(sale)[-2:] not in CHARM_ENDINGS:
                suggestion = 'Consider ending price in .99 or .95 for better appeal'

        if is_valid:
            if sale / original < AGGRESSIVE_RATIO:
                warning = 'Very aggressive discount - double-check pricing accuracy'
            elif abs(sale - sale.to_integral_value(rounding=ROUND_HALF_UP)) < CENT and sale > WHOLE_DOLLAR_HINT_THRESHOLD:
                suggestion = f"Consider psychological pricing (e.g., ${_money(sale - CENT)})"

    if original > 0:
        savings_percent = int((savings / original * HUNDRED).to_integral_value(rounding=ROUND_HALF_UP))
    else:
        savings_percent = 0

    return PriceValidationResult(
        is_valid=is_valid,
        savings=_money(savings),
        savings_percent=savings_percent,
        error=error,
        warning=warning,
        suggestion=suggestion,
    )


class DebouncedPriceValidator:
    """
    Recompute validation only once input has been quiet for `delay` seconds.

    Every `update()` restarts the timer; the callback receives the result of
    the latest inputs. Rules are identical to `validate_price`.
    """

    def __init__(self, callback: Callable[[PriceValidationResult], None], delay: float = 0.3):
        self.callback = callback
        self.delay = delay
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def update(self, original_price: Number, sale_price: Number, category='spirits') -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(
                self.delay, self._fire, args=(original_price, sale_price, category)
            )
            self._timer.daemon = True
            self._timer.start()

    def _fire(self, original_price, sale_price, category) -> None:
        try:
            result = validate_price(original_price, sale_price, category)
        except ValidationError as e:
            logger.warning(f"[PRICE] Debounced validation rejected input: {e.message}")
            return
        self.callback(result)

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
