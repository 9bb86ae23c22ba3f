"""Parser for vision-model extraction results."""

import re
import logging
from typing import Dict, Any, Optional
from datetime import datetime, timedelta

from receipts.models import Receipt, ExpenseCategory, ExpenseType, VALID_CATEGORIES

logger = logging.getLogger(__name__)

DEFAULT_TIME = '12:00'
UNKNOWN_MERCHANT = 'Unknown Merchant'


class ReceiptParser:
    """Parser for untrusted receipt extraction results."""

    @staticmethod
    def validate_and_clean(
        extracted: Dict[str, Any],
        target_currency: str,
        today: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Validate and clean extracted receipt data.

        Args:
            extracted: Raw JSON object returned by the vision model
            target_currency: Currency used when none is recognised
            today: Reference date (default: now)

        Returns:
            Cleaned fields keyed by Receipt field name
        """
        today = today or datetime.utcnow()

        amount = ReceiptParser._validate_amount(extracted.get('amount'))
        if amount is None:
            logger.warning(f"No usable amount in extraction result: {extracted.get('amount')!r}")
            amount = 0.0

        vat = ReceiptParser._validate_amount(extracted.get('vat'))
        if vat is None:
            vat = 0.0

        # Validate amounts relationship
        if amount and vat > amount:
            logger.warning(f"VAT exceeds total: amount={amount}, vat={vat}")

        date = ReceiptParser._validate_date(extracted.get('date'), today)
        if not date:
            date = today.strftime('%Y-%m-%d')
            logger.info(f"Using current date as receipt date: {date}")

        time = ReceiptParser._validate_time(extracted.get('time')) or DEFAULT_TIME

        currency = ReceiptParser._validate_currency(extracted.get('currency'))
        if not currency:
            logger.info(f"Using target currency for receipt: {target_currency}")
            currency = target_currency

        category = extracted.get('category')
        if category not in VALID_CATEGORIES:
            if category:
                logger.warning(f"Unknown category {category!r}, using Other")
            category = ExpenseCategory.OTHER.value

        expense_type = extracted.get('type')
        if expense_type not in (ExpenseType.BUSINESS.value, ExpenseType.PRIVATE.value):
            expense_type = ExpenseType.PRIVATE.value

        return {
            'merchant_name': ReceiptParser._clean_merchant_name(extracted.get('merchantName')),
            'merchant_address': ' '.join(str(extracted.get('merchantAddress') or '').split()),
            'date': date,
            'time': time,
            'amount': amount,
            'currency': currency,
            'vat': vat,
            'category': category,
            'type': expense_type,
            'latitude': ReceiptParser._validate_coordinate(extracted.get('latitude'), 90),
            'longitude': ReceiptParser._validate_coordinate(extracted.get('longitude'), 180),
        }

    @staticmethod
    def to_receipt(
        extracted: Dict[str, Any],
        image_data: str,
        target_currency: str,
        today: Optional[datetime] = None
    ) -> Receipt:
        """Build a new receipt, in its own currency, from an extraction result."""
        cleaned = ReceiptParser.validate_and_clean(extracted, target_currency, today)
        return Receipt(image_data=image_data, **cleaned)

    @staticmethod
    def _validate_amount(amount: Any) -> Optional[float]:
        """Validate and convert amount to float."""
        if amount is None or isinstance(amount, bool):
            return None

        try:
            value = float(amount)
            if value != value:
                return None
            if value < 0:
                logger.warning(f"Negative amount detected: {value}")
                return abs(value)
            if value > 999999.99:
                logger.warning(f"Extremely large amount detected: {value}")
                return None
            return round(value, 2)
        except (ValueError, TypeError):
            logger.warning(f"Invalid amount value: {amount}")
            return None

    @staticmethod
    def _validate_date(date_str: Any, today: datetime) -> Optional[str]:
        """Validate and normalize date string."""
        if not date_str or not isinstance(date_str, str):
            return None

        try:
            # Parse date
            date_obj = datetime.strptime(date_str.strip(), '%Y-%m-%d')

            # Check if date is reasonable (not in future, not too old)
            if date_obj.date() > today.date():
                logger.warning(f"Future date detected: {date_str}, using today")
                return today.strftime('%Y-%m-%d')

            # Check if date is more than 10 years old
            if date_obj < today - timedelta(days=3650):
                logger.warning(f"Very old date detected: {date_str}")

            return date_obj.strftime('%Y-%m-%d')

        except ValueError:
            logger.warning(f"Invalid date format: {date_str}")
            return None

    @staticmethod
    def _validate_time(time_str: Any) -> Optional[str]:
        """Normalize a HH:MM time, accepting seconds."""
        if not time_str or not isinstance(time_str, str):
            return None

        for fmt in ('%H:%M', '%H:%M:%S'):
            try:
                return datetime.strptime(time_str.strip(), fmt).strftime('%H:%M')
            except ValueError:
                continue

        logger.warning(f"Invalid time format: {time_str}")
        return None

    @staticmethod
    def _validate_currency(currency: Any) -> Optional[str]:
        if not isinstance(currency, str):
            return None
        code = currency.strip().upper()
        return code if re.fullmatch(r'[A-Z]{3}', code) else None

    @staticmethod
    def _validate_coordinate(value: Any, limit: float) -> Optional[float]:
        if value is None or isinstance(value, bool):
            return None
        try:
            coordinate = float(value)
        except (ValueError, TypeError):
            return None
        if coordinate != coordinate or abs(coordinate) > limit:
            return None
        return coordinate

    @staticmethod
    def _clean_merchant_name(merchant: Any) -> str:
        """Clean merchant name."""
        if not merchant or not isinstance(merchant, str):
            return UNKNOWN_MERCHANT

        # Remove extra whitespace
        cleaned = ' '.join(merchant.split())

        return cleaned or UNKNOWN_MERCHANT
