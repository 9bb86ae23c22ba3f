"""In-memory receipt collection and its currency-converted display view."""

import asyncio
import logging
from typing import List, Optional

from shared.local_store import LocalStore
from shared.validators import validate_currency_code
from receipts.models import Receipt, receipts_from_local, receipts_to_local
from receipts.repository import ReceiptRepository
from currency.converter import ExchangeRates, convert_receipts

logger = logging.getLogger(__name__)


class ReceiptCollectionStore:
    """
    Authoritative receipt list for the current session.

    ``display_receipts`` is a pure function of the authoritative list, the
    target currency and the rate table; it never changes stored entries.
    """

    def __init__(
        self,
        repository: ReceiptRepository,
        local_store: LocalStore,
        target_currency: str = 'EUR',
        signed_url_ttl: int = 3600
    ):
        self.repository = repository
        self.local_store = local_store
        self.signed_url_ttl = signed_url_ttl
        self.target_currency = validate_currency_code(target_currency)
        self.rates: Optional[ExchangeRates] = None
        self.selected_id: Optional[str] = None
        self.is_loading = False
        self._receipts: List[Receipt] = []
        self._display_key = None
        self._display: List[Receipt] = []

    @property
    def receipts(self) -> List[Receipt]:
        return list(self._receipts)

    @property
    def display_receipts(self) -> List[Receipt]:
        key = (tuple(self._receipts), self.target_currency, _rates_key(self.rates))
        if key != self._display_key:
            self._display = convert_receipts(self._receipts, self.target_currency, self.rates)
            self._display_key = key
        return list(self._display)

    @property
    def selected_receipt(self) -> Optional[Receipt]:
        if self.selected_id is None:
            return None
        return next((r for r in self.display_receipts if r.id == self.selected_id), None)

    # Mutators

    def set_receipts(self, receipts: List[Receipt]) -> None:
        self._receipts = list(receipts)

    def prepend(self, receipt: Receipt) -> int:
        """Insert a receipt at the top. Returns the new collection size."""
        self._receipts = [receipt] + self._receipts
        return len(self._receipts)

    def replace(self, receipt: Receipt) -> None:
        self._receipts = [receipt if r.id == receipt.id else r for r in self._receipts]

    def remove(self, receipt_id: str) -> Optional[Receipt]:
        removed = self.get(receipt_id)
        self._receipts = [r for r in self._receipts if r.id != receipt_id]
        return removed

    def get(self, receipt_id: str) -> Optional[Receipt]:
        return next((r for r in self._receipts if r.id == receipt_id), None)

    def clear(self) -> None:
        self._receipts = []
        self.selected_id = None

    def set_target_currency(self, currency: str) -> None:
        self.target_currency = validate_currency_code(currency)

    def set_rates(self, rates: Optional[ExchangeRates]) -> None:
        self.rates = dict(rates) if rates is not None else None

    def select(self, receipt_id: Optional[str]) -> None:
        self.selected_id = receipt_id

    def clear_selection(self) -> None:
        self.selected_id = None

    # Loading and local persistence

    def load_local(self) -> List[Receipt]:
        """Load the guest collection stored on this device."""
        self._receipts = receipts_from_local(self.local_store.load_guest_receipts())
        logger.info(f"Loaded {len(self._receipts)} guest receipts")
        return self.receipts

    def persist_local(self) -> None:
        self.local_store.save_guest_receipts(receipts_to_local(self._receipts))

    async def load_remote(self, user_id: str) -> List[Receipt]:
        """
        Load the user's receipts and resolve every image to a display URL.

        The list is published only after all image URLs are resolved.

        Raises:
            DatabaseError: If the receipt query fails
        """
        self.is_loading = True
        try:
            fetched = await asyncio.to_thread(self.repository.list_receipts, user_id)
            resolved = await asyncio.gather(*(self._resolve_image(r) for r in fetched))
            self._receipts = list(resolved)
        finally:
            self.is_loading = False

        return self.receipts

    async def _resolve_image(self, receipt: Receipt) -> Receipt:
        if not receipt.storage_path:
            return receipt

        url = await asyncio.to_thread(
            self.repository.get_image_url,
            receipt.storage_path,
            self.signed_url_ttl
        )
        if not url:
            return receipt
        return receipt.model_copy(update={'image_data': url})


def _rates_key(rates: Optional[ExchangeRates]):
    if rates is None:
        return None
    return tuple(sorted(rates.items()))
