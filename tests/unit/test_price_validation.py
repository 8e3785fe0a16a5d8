"""Unit tests for the price validator."""
import threading
import time
from decimal import Decimal

import pytest

from saleflyer.exceptions import ValidationError
from saleflyer.services.price_validation_service import (
    CATEGORY_RULES, DebouncedPriceValidator, validate_price
)
from saleflyer.models import ProductCategory


class TestValidatePrice:
    """Category policy checks."""

    def test_regular_spirits_discount_is_clean(self):
        result = validate_price('39.99', '32.99', 'spirits')

        assert result.is_valid is True
        assert result.savings == '7.00'
        assert result.savings_percent == 18
        assert result.error is None
        assert result.warning is None
        assert result.suggestion is None

    def test_zero_sale_price_is_rejected(self):
        result = validate_price(10, 0)

        assert result.is_valid is False
        assert result.error == 'Sale price must be greater than $0'

    def test_sale_price_not_below_original_is_rejected(self):
        result = validate_price(20, 25)

        assert result.is_valid is False
        assert result.error == 'Sale price must be lower than original price'
        assert result.savings == '-5.00'

    def test_equal_prices_are_rejected(self):
        result = validate_price('15.00', '15.00', 'wine')

        assert result.is_valid is False
        assert result.error == 'Sale price must be lower than original price'

    def test_below_category_minimum_is_rejected(self):
        result = validate_price('8.00', '7.50', 'spirits')

        assert result.is_valid is False
        assert result.error == 'spirits products should be priced at least $10'

    def test_above_category_maximum_only_warns(self):
        result = validate_price('2500.00', '2000.00', 'spirits')

        assert result.is_valid is True
        assert result.warning == 'Unusually high price for spirits (typically under $2000)'
        assert result.suggestion == 'Consider psychological pricing (e.g., $1999.99)'

    def test_small_discount_warns_with_target_price(self):
        result = validate_price('40.00', '39.50', 'spirits')

        assert result.is_valid is True
        assert result.warning == 'Small discount for spirits - consider at least 5% off'
        assert result.suggestion == 'Try $38.00 for 5% off'

    def test_discount_over_maximum_is_rejected(self):
        result = validate_price('100.00', '40.00', 'spirits')

        assert result.is_valid is False
        assert result.error == 'Discount too high for spirits (max 50%)'
        assert result.suggestion == 'Maximum recommended: $50.00'
        assert result.savings_percent == 60

    def test_non_charm_ending_gets_suggestion(self):
        result = validate_price('40.00', '33.50', 'spirits')

        assert result.is_valid is True
        assert result.suggestion == 'Consider ending price in .99 or .95 for better appeal'

    def test_whole_dollar_price_gets_psychological_hint(self):
        result = validate_price('40.00', '34.00', 'spirits')

        assert result.is_valid is True
        assert result.suggestion == 'Consider psychological pricing (e.g., $33.99)'

    def test_whole_dollar_below_threshold_keeps_charm_hint(self):
        result = validate_price('12.00', '10.00', 'wine')

        assert result.is_valid is True
        assert result.suggestion == 'Consider ending price in .99 or .95 for better appeal'

    def test_category_limits_follow_policy_table(self):
        result = validate_price('30.00', '16.99', 'beer')

        # 43% is above the 40% beer ceiling
        assert result.is_valid is False
        assert result.error == 'Discount too high for beer (max 40%)'

    def test_every_category_has_rules(self):
        assert set(CATEGORY_RULES) == set(ProductCategory)

    def test_same_input_same_result(self):
        first = validate_price('24.99', '19.99', 'wine')
        second = validate_price('24.99', '19.99', 'wine')

        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_unknown_category_raises(self):
        with pytest.raises(ValidationError) as exc:
            validate_price('10', '5', 'cigars')
        assert 'Unknown category' in exc.value.message

    def test_non_numeric_price_raises(self):
        with pytest.raises(ValidationError):
            validate_price('abc', '5')

    @pytest.mark.parametrize('price', ['NaN', 'Infinity', '-Infinity', '1e30', float('inf'), Decimal('NaN')])
    def test_non_finite_or_oversized_price_raises(self, price):
        with pytest.raises(ValidationError) as exc:
            validate_price(price, '10')
        assert exc.value.message == 'original_price must be a number'

    def test_largest_storable_price_is_accepted(self):
        assert validate_price('99999999.99', '99999998.99', 'wine').savings == '1.00'

    def test_missing_category_defaults_to_spirits(self):
        assert validate_price('39.99', '32.99', None) == validate_price('39.99', '32.99', 'spirits')


class TestDebouncedPriceValidator:
    """Debounced recomputation."""

    def test_only_latest_input_is_validated(self):
        results = []
        done = threading.Event()

        def on_result(result):
            results.append(result)
            done.set()

        validator = DebouncedPriceValidator(on_result, delay=0.05)
        validator.update('39.99', '10.00')
        validator.update('39.99', '20.00')
        validator.update('39.99', '32.99')

        assert done.wait(2)
        time.sleep(0.15)
        validator.cancel()

        assert len(results) == 1
        assert results[0].savings == '7.00'

    def test_cancel_drops_pending_validation(self):
        results = []
        validator = DebouncedPriceValidator(results.append, delay=0.05)
        validator.update('39.99', '32.99')
        validator.cancel()

        time.sleep(0.15)
        assert results == []

    def test_invalid_input_never_reaches_callback(self):
        results = []
        validator = DebouncedPriceValidator(results.append, delay=0.01)
        validator.update('not-a-price', '5')

        time.sleep(0.1)
        assert results == []
