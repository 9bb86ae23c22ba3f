"""Unit tests for currency conversion."""

import pytest
import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from currency.converter import apply_conversion, convert_currency, convert_receipts, exchange_rate
from receipts.models import Receipt


RATES = {'EUR': 1.0, 'USD': 1.1, 'SEK': 11.0}


class TestConvertCurrency:
    """Test cases for convert_currency."""

    @pytest.mark.parametrize('rates', [None, {}, RATES, {'USD': 0.5}])
    def test_identity_ignores_rates(self, rates):
        """Test that equal currencies return the amount unchanged."""
        assert convert_currency(12.34, 'USD', 'USD', rates) == 12.34

    def test_cross_rate_via_base(self):
        """Test conversion through the base currency."""
        assert convert_currency(10, 'USD', 'SEK', RATES) == pytest.approx(100.0)

    def test_to_base_currency(self):
        """Test conversion into the base currency."""
        assert convert_currency(11, 'SEK', 'EUR', RATES) == pytest.approx(1.0)

    def test_missing_source_rate(self):
        """Test that a missing source rate returns the amount unchanged."""
        assert convert_currency(10, 'GBP', 'SEK', RATES) == 10

    def test_missing_target_rate(self):
        """Test that a missing target rate returns the amount unchanged."""
        assert convert_currency(10, 'USD', 'JPY', RATES) == 10

    def test_no_rate_table(self):
        """Test that a null rate table returns the amount unchanged."""
        assert convert_currency(10, 'USD', 'SEK', None) == 10

    def test_missing_rate_logs_warning(self, caplog):
        """Test that a missing rate is reported as a warning."""
        convert_currency(10, 'USD', 'JPY', RATES)

        assert 'Missing exchange rate' in caplog.text

    def test_empty_rate_table_logs_warning(self, caplog):
        """Test that an empty rate table is a missing rate, not an absent table."""
        assert convert_currency(10, 'USD', 'SEK', {}) == 10

        assert 'Missing exchange rate for USD or SEK' in caplog.text

    def test_no_rate_table_is_silent(self, caplog):
        """Test that rates not yet loaded do not warn."""
        convert_currency(10, 'USD', 'SEK', None)

        assert 'Missing exchange rate' not in caplog.text


class TestExchangeRate:
    """Test cases for exchange_rate."""

    def test_rate_between_currencies(self):
        """Test the source to target rate."""
        assert exchange_rate('USD', 'SEK', RATES) == pytest.approx(10.0)

    def test_identity_rate(self):
        """Test that equal currencies have rate 1."""
        assert exchange_rate('SEK', 'SEK', RATES) == 1.0

    def test_missing_rate_falls_back_to_one(self):
        """Test that the rate matches the identity fallback."""
        assert exchange_rate('USD', 'JPY', RATES) == 1.0
        assert exchange_rate('USD', 'SEK', None) == 1.0


class TestConvertReceipts:
    """Test cases for receipt conversion."""

    @pytest.fixture
    def receipts(self):
        """Receipts in two currencies."""
        return [
            Receipt(id='r1', date='2024-01-15', amount=10, currency='USD'),
            Receipt(id='r2', date='2024-01-16', amount=55, currency='SEK'),
        ]

    def test_apply_conversion(self, receipts):
        """Test converting a single receipt."""
        converted = apply_conversion(receipts[0], 'SEK', RATES)

        assert converted.converted_amount == pytest.approx(100.0)
        assert converted.exchange_rate == pytest.approx(10.0)
        assert converted.target_currency == 'SEK'
        assert converted.amount == 10
        assert converted.currency == 'USD'

    def test_converted_equals_amount_times_rate(self, receipts):
        """Test that the stored rate reproduces the converted amount."""
        for receipt in convert_receipts(receipts, 'EUR', RATES):
            assert receipt.converted_amount == pytest.approx(receipt.amount * receipt.exchange_rate)

    def test_same_currency_keeps_amount(self, receipts):
        """Test that a receipt already in the target currency is unchanged."""
        converted = apply_conversion(receipts[1], 'SEK', RATES)

        assert converted.converted_amount == 55
        assert converted.exchange_rate == 1.0

    def test_does_not_mutate_input(self, receipts):
        """Test that conversion leaves the input receipts untouched."""
        convert_receipts(receipts, 'SEK', RATES)

        assert receipts[0].target_currency == 'USD'
        assert receipts[0].converted_amount == 10

    def test_null_rates_pass_through(self, receipts):
        """Test that without rates the display list equals the input."""
        result = convert_receipts(receipts, 'SEK', None)

        assert result == receipts
        assert result is not receipts

    def test_recomputation_is_idempotent(self, receipts):
        """Test that recomputing with unchanged inputs yields the same list."""
        first = convert_receipts(receipts, 'SEK', RATES)
        second = convert_receipts(receipts, 'SEK', RATES)

        assert first == second


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
