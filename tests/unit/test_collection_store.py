"""Unit tests for the receipt collection store."""

import pytest
from unittest.mock import Mock
import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from ledger.store import ReceiptCollectionStore
from receipts.models import Receipt
from shared.local_store import LocalStore
from shared.exceptions import DatabaseError


RATES = {'EUR': 1.0, 'USD': 1.1, 'SEK': 11.0}


def make_receipt(receipt_id, amount=10.0, currency='USD', **kwargs):
    """Build a receipt for tests."""
    return Receipt(id=receipt_id, date='2024-01-15', amount=amount, currency=currency, **kwargs)


class TestReceiptCollectionStore:
    """Test cases for ReceiptCollectionStore."""

    @pytest.fixture
    def repository(self):
        """Mock receipt repository."""
        return Mock()

    @pytest.fixture
    def local_store(self):
        """In-memory local store."""
        return LocalStore()

    @pytest.fixture
    def store(self, repository, local_store):
        """Store under test."""
        return ReceiptCollectionStore(repository, local_store, target_currency='SEK', signed_url_ttl=600)

    def test_display_list_converts(self, store):
        """Test that the display list is expressed in the target currency."""
        store.set_receipts([make_receipt('r1')])
        store.set_rates(RATES)

        displayed = store.display_receipts[0]

        assert displayed.converted_amount == pytest.approx(100.0)
        assert displayed.target_currency == 'SEK'
        assert store.receipts[0].converted_amount == 10.0

    def test_display_list_follows_target_currency(self, store):
        """Test recomputation when the target currency changes."""
        store.set_receipts([make_receipt('r1')])
        store.set_rates(RATES)
        store.display_receipts

        store.set_target_currency('eur')

        assert store.display_receipts[0].target_currency == 'EUR'
        assert store.display_receipts[0].converted_amount == pytest.approx(10 / 1.1)

    def test_display_list_without_rates(self, store):
        """Test that without rates the display list equals the stored list."""
        receipts = [make_receipt('r1'), make_receipt('r2', 55, 'SEK')]
        store.set_receipts(receipts)

        assert store.display_receipts == receipts

    def test_display_recomputation_is_idempotent(self, store):
        """Test that reading the display list twice gives equal output."""
        store.set_receipts([make_receipt('r1'), make_receipt('r2', 3, 'EUR')])
        store.set_rates(RATES)

        assert store.display_receipts == store.display_receipts

    def test_selected_receipt_uses_display_list(self, store):
        """Test that the open detail record reflects the target currency."""
        store.set_receipts([make_receipt('r1')])
        store.set_rates(RATES)
        store.select('r1')

        assert store.selected_receipt.converted_amount == pytest.approx(100.0)

        store.set_target_currency('USD')

        assert store.selected_receipt.converted_amount == 10.0

    def test_selected_receipt_missing(self, store):
        """Test selecting an unknown identifier."""
        store.select('missing')

        assert store.selected_receipt is None

    def test_prepend_replace_remove(self, store):
        """Test the list mutators."""
        assert store.prepend(make_receipt('r1')) == 1
        assert store.prepend(make_receipt('r2')) == 2
        assert [r.id for r in store.receipts] == ['r2', 'r1']

        store.replace(make_receipt('r1', amount=99))
        assert store.get('r1').amount == 99

        removed = store.remove('r2')
        assert removed.id == 'r2'
        assert [r.id for r in store.receipts] == ['r1']

    def test_receipts_returns_copy(self, store):
        """Test that callers cannot change the stored list."""
        store.set_receipts([make_receipt('r1')])

        store.receipts.clear()

        assert len(store.receipts) == 1

    def test_local_round_trip(self, store, local_store, repository):
        """Test persisting and loading the guest collection."""
        store.set_receipts([make_receipt('r1', image_data='data:image/jpeg;base64,AAAA')])
        store.persist_local()

        other = ReceiptCollectionStore(repository, local_store)
        loaded = other.load_local()

        assert loaded[0].id == 'r1'
        assert loaded[0].image_data == 'data:image/jpeg;base64,AAAA'

    @pytest.mark.asyncio
    async def test_load_remote_resolves_images(self, store, repository):
        """Test that image references become display URLs before publishing."""
        repository.list_receipts.return_value = [
            make_receipt('r1', storage_path='user-123/1_receipt.jpg'),
            make_receipt('r2'),
            make_receipt('r3', storage_path='user-123/3_receipt.jpg'),
        ]
        repository.get_image_url.side_effect = lambda path, ttl: (
            None if path.startswith('user-123/3') else f'https://signed/{path}?ttl={ttl}'
        )

        loaded = await store.load_remote('user-123')

        assert [r.id for r in loaded] == ['r1', 'r2', 'r3']
        assert loaded[0].image_data == 'https://signed/user-123/1_receipt.jpg?ttl=600'
        assert loaded[1].image_data == ''
        assert loaded[2].image_data == ''
        assert loaded[2].storage_path == 'user-123/3_receipt.jpg'
        assert repository.get_image_url.call_count == 2
        assert store.is_loading is False

    @pytest.mark.asyncio
    async def test_load_remote_failure_keeps_list(self, store, repository):
        """Test that a failed query leaves the current list in place."""
        store.set_receipts([make_receipt('r1')])
        repository.list_receipts.side_effect = DatabaseError("Failed to query items")

        with pytest.raises(DatabaseError):
            await store.load_remote('user-123')

        assert [r.id for r in store.receipts] == ['r1']
        assert store.is_loading is False

    def test_clear(self, store):
        """Test clearing the collection."""
        store.set_receipts([make_receipt('r1')])
        store.select('r1')

        store.clear()

        assert store.receipts == []
        assert store.selected_id is None


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
