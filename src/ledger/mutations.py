"""Optimistic create/update/delete with remote persistence."""

import asyncio
import logging
from typing import Callable, Optional

from shared.images import decode_data_url
from shared.exceptions import (
    ConnectivityError,
    ExpenseTrackerException,
    ModeTransitionError,
    SchemaError,
    StorageError,
    ValidationError
)
from receipts.models import Receipt
from receipts.repository import ReceiptRepository
from currency.converter import apply_conversion
from ledger.modes import SessionState
from ledger.prompts import UserPrompter
from ledger.store import ReceiptCollectionStore

logger = logging.getLogger(__name__)

DELETE_CONFIRMATION = "Are you sure you want to delete this receipt?"
UPDATE_FAILED = "Failed to update in cloud."
CREATE_FAILED = "Failed to save receipt to cloud: "
MANUAL_ENTRY_FAILED = "Failed to save manual entry to cloud: "

# Collection size after insert that triggers the donation prompt
DONATION_PROMPT_SIZE = 3


class MutationPipeline:
    """
    Applies receipt changes to the local collection first, then persists them.

    Remote failures are reported but never reverted locally.
    """

    def __init__(
        self,
        store: ReceiptCollectionStore,
        repository: ReceiptRepository,
        get_state: Callable[[], SessionState],
        prompter: UserPrompter,
        on_third_receipt: Optional[Callable[[], None]] = None
    ):
        self.store = store
        self.repository = repository
        self.get_state = get_state
        self.prompter = prompter
        self.on_third_receipt = on_third_receipt

    def _editable_state(self) -> SessionState:
        state = self.get_state()
        if not state.can_edit:
            raise ModeTransitionError(f"Receipts cannot be changed in {state.mode.value} mode")
        return state

    async def create(self, receipt: Receipt, failure_message: str = CREATE_FAILED) -> Receipt:
        """
        Add a new receipt.

        Args:
            receipt: Captured or manually entered receipt
            failure_message: Alert prefix for a failed remote save

        Returns:
            The receipt as held in the collection

        Raises:
            ModeTransitionError: If no receipt collection is active
        """
        state = self._editable_state()

        # Without rates the receipt stays expressed in its own currency
        if self.store.rates is not None:
            receipt = apply_conversion(receipt, self.store.target_currency, self.store.rates)
        else:
            receipt = apply_conversion(receipt, receipt.currency, None)

        size = self.store.prepend(receipt)
        self.store.select(receipt.id)

        if size == DONATION_PROMPT_SIZE and self.on_third_receipt:
            self.on_third_receipt()

        if state.is_guest:
            self.store.persist_local()
            return receipt

        try:
            saved = await self.persist_new(state.user_id, receipt)
        except SchemaError as e:
            logger.error(f"Receipts table rejected attribute {e.attribute}: {e.message}")
            await self.prompter.alert(
                failure_message + f"the receipts table does not accept '{e.attribute or 'unknown'}'. "
                "Update the table schema and try again."
            )
            return receipt
        except ExpenseTrackerException as e:
            logger.error(f"Error saving receipt {receipt.id}: {e.message}")
            await self.prompter.alert(failure_message + e.message)
            return receipt

        self.store.replace(saved)
        return saved

    async def persist_new(self, user_id: str, receipt: Receipt) -> Receipt:
        """
        Upload a receipt's image and insert its row.

        An image upload failure is not fatal; the row is saved without a
        storage path.

        Raises:
            SchemaError: If the table rejects the row's attributes
            DatabaseError: If the insert fails
        """
        storage_path = receipt.storage_path

        if receipt.has_inline_image:
            try:
                content, content_type = decode_data_url(receipt.image_data)
                storage_path = await asyncio.to_thread(
                    self.repository.upload_image, user_id, content, content_type
                )
            except (ValidationError, StorageError, ConnectivityError) as e:
                logger.error(f"Image upload failed for receipt {receipt.id}: {e.message}")
                storage_path = None

        saved = receipt.model_copy(update={'storage_path': storage_path})
        await asyncio.to_thread(self.repository.insert_receipt, user_id, saved)
        return saved

    async def update(self, receipt: Receipt) -> Receipt:
        """
        Replace a receipt with its edited version.

        Raises:
            ModeTransitionError: If no receipt collection is active
        """
        state = self._editable_state()

        if self.store.rates is not None:
            receipt = apply_conversion(
                receipt, receipt.target_currency or self.store.target_currency, self.store.rates
            )

        self.store.replace(receipt)
        self.store.clear_selection()

        if state.is_guest:
            self.store.persist_local()
            return receipt

        try:
            await asyncio.to_thread(self.repository.update_receipt, state.user_id, receipt)
        except ExpenseTrackerException as e:
            logger.error(f"Error updating receipt {receipt.id}: {e.message}")
            await self.prompter.alert(UPDATE_FAILED)

        return receipt

    async def delete(self, receipt_id: str) -> bool:
        """
        Delete a receipt after the user confirms.

        Returns:
            True if the receipt was removed, False if the user declined

        Raises:
            ModeTransitionError: If no receipt collection is active
        """
        state = self._editable_state()

        if not await self.prompter.confirm(DELETE_CONFIRMATION):
            return False

        removed = self.store.remove(receipt_id)
        self.store.clear_selection()

        if state.is_guest:
            self.store.persist_local()
            return True

        try:
            await asyncio.to_thread(
                self.repository.delete_receipt,
                state.user_id,
                receipt_id,
                removed.storage_path if removed else None
            )
        except ExpenseTrackerException as e:
            logger.error(f"Error deleting receipt {receipt_id}: {e.message}")

        return True
