"""Currency conversion through a common base currency."""

import logging
from typing import Dict, Iterable, List, Optional

from receipts.models import Receipt

logger = logging.getLogger(__name__)

# Currency code -> units of that currency per one unit of the base currency
ExchangeRates = Dict[str, float]


def _rate_pair(source: str, target: str, rates: Optional[ExchangeRates]):
    """Return (source_rate, target_rate), or None when either is unavailable."""
    if rates is None:
        return None

    source_rate = rates.get(source)
    target_rate = rates.get(target)

    if not source_rate or not target_rate:
        logger.warning(f"Missing exchange rate for {source} or {target}")
        return None

    return source_rate, target_rate


def convert_currency(
    amount: float,
    source_currency: str,
    target_currency: str,
    rates: Optional[ExchangeRates]
) -> float:
    """
    Convert an amount between currencies.

    Rates are "how much of this currency is one base unit", e.g. with
    EUR = 1, USD = 1.1, SEK = 11: 10 USD -> 10 / 1.1 EUR -> 100 SEK.

    Args:
        amount: Amount in the source currency
        source_currency: Source currency code
        target_currency: Target currency code
        rates: Rate table, may be None

    Returns:
        Converted amount, or the original amount when a rate is missing
    """
    if source_currency == target_currency:
        return amount

    pair = _rate_pair(source_currency, target_currency, rates)
    if pair is None:
        return amount

    source_rate, target_rate = pair
    return amount / source_rate * target_rate


def exchange_rate(source_currency: str, target_currency: str, rates: Optional[ExchangeRates]) -> float:
    """
    Rate from source to target such that converted == amount * rate.

    Falls back to 1.0 whenever the conversion itself falls back to identity.
    """
    if source_currency == target_currency:
        return 1.0

    pair = _rate_pair(source_currency, target_currency, rates)
    if pair is None:
        return 1.0

    source_rate, target_rate = pair
    return target_rate / source_rate


def apply_conversion(receipt: Receipt, target_currency: str, rates: Optional[ExchangeRates]) -> Receipt:
    """Return a copy of the receipt expressed in target_currency."""
    return receipt.model_copy(update={
        'converted_amount': convert_currency(receipt.amount, receipt.currency, target_currency, rates),
        'exchange_rate': exchange_rate(receipt.currency, target_currency, rates),
        'target_currency': target_currency,
    })


def convert_receipts(
    receipts: Iterable[Receipt],
    target_currency: str,
    rates: Optional[ExchangeRates]
) -> List[Receipt]:
    """
    Build the display list.

    Without a rate table the receipts pass through unmodified.
    """
    if rates is None:
        return list(receipts)

    return [apply_conversion(receipt, target_currency, rates) for receipt in receipts]
