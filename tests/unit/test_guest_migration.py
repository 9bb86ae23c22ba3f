"""Unit tests for guest receipt migration."""

import pytest
import base64
from unittest.mock import AsyncMock, Mock, patch
from botocore.exceptions import ReadTimeoutError
import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from ledger.migration import GuestMigration
from ledger.modes import SessionState
from ledger.mutations import MutationPipeline
from ledger.store import ReceiptCollectionStore
from receipts.models import Receipt, receipts_to_local
from receipts.repository import ReceiptRepository
from shared.config import AppConfig
from shared.local_store import LocalStore
from shared.exceptions import DatabaseError


IMAGE = 'data:image/jpeg;base64,' + base64.b64encode(b'jpeg-bytes').decode('ascii')


class FakeReceiptsBackend:
    """In-memory stand-in for the receipt repository."""

    def __init__(self):
        self.rows = {}
        self.uploads = []
        self.fail_ids = set()

    def upload_image(self, user_id, content, content_type='image/jpeg'):
        key = f"{user_id}/{len(self.uploads)}_receipt.jpg"
        self.uploads.append(key)
        return key

    def insert_receipt(self, user_id, receipt):
        if receipt.id in self.fail_ids:
            raise DatabaseError("Failed to put item")
        self.rows[receipt.id] = (user_id, receipt)
        return receipt

    def list_receipts(self, user_id):
        return [receipt for owner, receipt in self.rows.values() if owner == user_id]

    def get_image_url(self, storage_path, expiration=3600):
        return f"https://signed/{storage_path}"


class TestGuestMigration:
    """Test cases for GuestMigration."""

    @pytest.fixture
    def backend(self):
        """Empty remote store."""
        return FakeReceiptsBackend()

    @pytest.fixture
    def local_store(self):
        """Local store holding two guest receipts."""
        local_store = LocalStore()
        local_store.save_guest_receipts(receipts_to_local([
            Receipt(id='g2', date='2024-01-16', amount=20, currency='EUR', image_data=IMAGE),
            Receipt(id='g1', date='2024-01-15', amount=10, currency='EUR'),
        ]))
        return local_store

    @pytest.fixture
    def prompter(self):
        """Prompter that confirms everything."""
        prompter = Mock()
        prompter.confirm = AsyncMock(return_value=True)
        prompter.alert = AsyncMock()
        return prompter

    @pytest.fixture
    def store(self, backend, local_store):
        """Receipt collection."""
        return ReceiptCollectionStore(backend, local_store)

    @pytest.fixture
    def migration(self, backend, local_store, prompter, store):
        """Migration under test, refreshing the store from the backend."""
        pipeline = MutationPipeline(
            store, backend, lambda: SessionState.authenticated('user-123'), prompter
        )
        return GuestMigration(local_store, pipeline, prompter, store.load_remote)

    @pytest.mark.asyncio
    async def test_migrates_all_receipts(self, migration, backend, local_store, prompter, store):
        """Test accepting the sync with two guest receipts and no remote ones."""
        migrated = await migration.run('user-123')

        assert migrated == 2
        assert set(backend.rows) == {'g1', 'g2'}
        assert backend.rows['g2'][1].storage_path == 'user-123/0_receipt.jpg'
        assert backend.rows['g1'][1].storage_path is None
        assert local_store.load_guest_receipts() == []
        assert {r.id for r in store.receipts} == {'g1', 'g2'}
        prompter.alert.assert_awaited_once_with("Successfully synced 2 receipts!")

        question = prompter.confirm.await_args_list[0][0][0]
        assert question.startswith("You have 2 receipts from your guest session.")

    @pytest.mark.asyncio
    async def test_records_processed_in_order(self, migration, local_store, prompter):
        """Test that records are migrated one after another."""
        order = []
        pipeline = migration.pipeline
        original = pipeline.persist_new

        async def tracking(user_id, receipt):
            order.append(receipt.id)
            return await original(user_id, receipt)

        pipeline.persist_new = tracking

        await migration.run('user-123')

        assert order == ['g2', 'g1']

    @pytest.mark.asyncio
    async def test_partial_failure_continues(self, migration, backend, local_store, prompter):
        """Test that one failing record does not stop the others."""
        backend.fail_ids.add('g2')

        migrated = await migration.run('user-123')

        assert migrated == 1
        assert set(backend.rows) == {'g1'}
        assert local_store.load_guest_receipts() == []
        prompter.alert.assert_awaited_once_with("Successfully synced 1 receipts!")

    @pytest.mark.asyncio
    async def test_read_timeout_does_not_stop_migration(self, local_store, prompter):
        """Test that a timed-out insert is counted as one failure and the loop goes on."""
        with patch('shared.dynamodb.boto3'), patch('shared.s3.boto3'):
            repository = ReceiptRepository(AppConfig())
        repository.receipts_table.table = Mock()
        repository.receipts_table.table.put_item.side_effect = [
            ReadTimeoutError(endpoint_url='https://dynamodb.eu-north-1.amazonaws.com'),
            {}
        ]
        repository.images = Mock()
        repository.images.put_image.side_effect = lambda key, *args, **kwargs: key
        refresh = AsyncMock()
        pipeline = MutationPipeline(
            ReceiptCollectionStore(repository, local_store), repository,
            lambda: SessionState.authenticated('user-123'), prompter
        )

        migrated = await GuestMigration(local_store, pipeline, prompter, refresh).run('user-123')

        assert migrated == 1
        assert repository.receipts_table.table.put_item.call_count == 2
        assert local_store.load_guest_receipts() == []
        prompter.alert.assert_awaited_once_with("Successfully synced 1 receipts!")
        refresh.assert_awaited_once_with('user-123')

    @pytest.mark.asyncio
    async def test_total_failure_keeps_guest_data(self, migration, backend, local_store, prompter, store):
        """Test that nothing is cleared when every record fails."""
        backend.fail_ids.update({'g1', 'g2'})

        migrated = await migration.run('user-123')

        assert migrated == 0
        assert len(local_store.load_guest_receipts()) == 2
        assert store.receipts == []
        prompter.alert.assert_awaited_once_with("Failed to sync receipts.")

    @pytest.mark.asyncio
    async def test_decline_and_discard(self, migration, backend, local_store, prompter):
        """Test declining the sync and discarding the guest data."""
        prompter.confirm.side_effect = [False, True]

        assert await migration.run('user-123') is None

        assert backend.rows == {}
        assert local_store.load_guest_receipts() == []
        prompter.alert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_decline_and_keep(self, migration, backend, local_store, prompter):
        """Test declining the sync and keeping the guest data."""
        prompter.confirm.side_effect = [False, False]

        assert await migration.run('user-123') is None

        assert backend.rows == {}
        assert len(local_store.load_guest_receipts()) == 2

    @pytest.mark.asyncio
    async def test_no_guest_data(self, migration, local_store, prompter):
        """Test that nothing is asked without guest receipts."""
        local_store.clear_guest_receipts()

        assert await migration.run('user-123') is None

        prompter.confirm.assert_not_awaited()


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
