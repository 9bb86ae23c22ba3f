"""Unit tests for the receipt extraction parser."""

import pytest
from datetime import datetime, timedelta
import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from extraction.parser import ReceiptParser
from receipts.models import ExpenseCategory, ExpenseType


TODAY = datetime(2024, 6, 1, 10, 0)


class TestReceiptParser:
    """Test cases for ReceiptParser."""

    def test_validate_and_clean_complete_data(self):
        """Test validation with a complete extraction result."""
        extracted = {
            'merchantName': '  ICA   Supermarket ',
            'merchantAddress': 'Drottninggatan 1,\n Stockholm',
            'date': '2024-05-30',
            'time': '14:05',
            'amount': 245.5,
            'currency': 'sek',
            'vat': 29.46,
            'category': 'Food & Dining',
            'type': 'Business',
            'latitude': 59.33,
            'longitude': 18.06
        }

        cleaned = ReceiptParser.validate_and_clean(extracted, 'EUR', today=TODAY)

        assert cleaned['merchant_name'] == 'ICA Supermarket'
        assert cleaned['merchant_address'] == 'Drottninggatan 1, Stockholm'
        assert cleaned['date'] == '2024-05-30'
        assert cleaned['time'] == '14:05'
        assert cleaned['amount'] == 245.5
        assert cleaned['currency'] == 'SEK'
        assert cleaned['vat'] == 29.46
        assert cleaned['category'] == 'Food & Dining'
        assert cleaned['type'] == 'Business'
        assert cleaned['latitude'] == 59.33
        assert cleaned['longitude'] == 18.06

    def test_validate_and_clean_empty_result(self):
        """Test defaults when the model returns nothing useful."""
        cleaned = ReceiptParser.validate_and_clean({}, 'SEK', today=TODAY)

        assert cleaned['merchant_name'] == 'Unknown Merchant'
        assert cleaned['amount'] == 0.0
        assert cleaned['vat'] == 0.0
        assert cleaned['date'] == '2024-06-01'
        assert cleaned['time'] == '12:00'
        assert cleaned['currency'] == 'SEK'
        assert cleaned['category'] == ExpenseCategory.OTHER.value
        assert cleaned['type'] == ExpenseType.PRIVATE.value
        assert cleaned['latitude'] is None
        assert cleaned['longitude'] is None

    def test_validate_and_clean_missing_date(self):
        """Test that a missing date uses the current date."""
        cleaned = ReceiptParser.validate_and_clean({'amount': 25.0}, 'EUR')

        assert cleaned['date'] == datetime.utcnow().strftime('%Y-%m-%d')

    def test_unknown_category_and_type(self):
        """Test that values outside the enumerations fall back."""
        cleaned = ReceiptParser.validate_and_clean(
            {'category': 'Groceries', 'type': 'Personal'}, 'EUR', today=TODAY
        )

        assert cleaned['category'] == 'Other'
        assert cleaned['type'] == 'Private'

    def test_invalid_currency_uses_target(self):
        """Test that an unrecognised currency uses the target currency."""
        cleaned = ReceiptParser.validate_and_clean({'currency': 'kr'}, 'NOK', today=TODAY)

        assert cleaned['currency'] == 'NOK'

    def test_validate_amount_negative(self):
        """Test validation of negative amounts."""
        amount = ReceiptParser._validate_amount(-10.50)

        # Should convert to positive
        assert amount == 10.50

    def test_validate_amount_too_large(self):
        """Test validation of extremely large amounts."""
        amount = ReceiptParser._validate_amount(9999999.99)

        assert amount is None

    def test_validate_amount_rounds(self):
        """Test that amounts are rounded to cents."""
        assert ReceiptParser._validate_amount(10.999) == 11.0

    def test_validate_amount_from_string(self):
        """Test numeric strings and garbage."""
        assert ReceiptParser._validate_amount('12.30') == 12.3
        assert ReceiptParser._validate_amount('twelve') is None
        assert ReceiptParser._validate_amount(True) is None

    def test_validate_date_future(self):
        """Test validation of future dates."""
        future_date = (TODAY + timedelta(days=10)).strftime('%Y-%m-%d')

        validated = ReceiptParser._validate_date(future_date, TODAY)

        # Should use current date instead
        assert validated == '2024-06-01'

    def test_validate_date_very_old(self):
        """Test validation of very old dates."""
        validated = ReceiptParser._validate_date('2010-01-01', TODAY)

        # Should still be valid but logged as warning
        assert validated == '2010-01-01'

    def test_validate_date_invalid(self):
        """Test that malformed dates are rejected."""
        assert ReceiptParser._validate_date('01/05/2024', TODAY) is None

    def test_validate_time(self):
        """Test time normalization."""
        assert ReceiptParser._validate_time('09:15:42') == '09:15'
        assert ReceiptParser._validate_time('25:00') is None
        assert ReceiptParser._validate_time(None) is None

    def test_validate_coordinate(self):
        """Test that coordinates are kept only when in range."""
        assert ReceiptParser._validate_coordinate('59.3', 90) == 59.3
        assert ReceiptParser._validate_coordinate(91, 90) is None
        assert ReceiptParser._validate_coordinate('north', 90) is None

    def test_clean_merchant_name(self):
        """Test merchant name cleaning."""
        assert ReceiptParser._clean_merchant_name('  TEST   STORE  ') == 'TEST STORE'
        assert ReceiptParser._clean_merchant_name('   ') == 'Unknown Merchant'
        assert ReceiptParser._clean_merchant_name(None) == 'Unknown Merchant'

    def test_to_receipt(self):
        """Test building a receipt from an extraction result."""
        receipt = ReceiptParser.to_receipt(
            {'merchantName': 'Pressbyran', 'amount': 35, 'currency': 'SEK', 'date': '2024-05-01'},
            'data:image/jpeg;base64,AAAA',
            'EUR',
            today=TODAY
        )

        assert receipt.merchant_name == 'Pressbyran'
        assert receipt.amount == 35.0
        assert receipt.currency == 'SEK'
        assert receipt.target_currency == 'SEK'
        assert receipt.converted_amount == 35.0
        assert receipt.image_data == 'data:image/jpeg;base64,AAAA'
        assert receipt.storage_path is None


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
