"""Moves guest receipts into a newly signed-in account."""

import logging
from typing import Awaitable, Callable, Optional

from shared.local_store import LocalStore
from shared.exceptions import ExpenseTrackerException
from receipts.models import receipts_from_local
from ledger.mutations import MutationPipeline
from ledger.prompts import UserPrompter

logger = logging.getLogger(__name__)


class GuestMigration:
    """Offers to sync receipts saved in guest mode to the user's account."""

    def __init__(
        self,
        local_store: LocalStore,
        pipeline: MutationPipeline,
        prompter: UserPrompter,
        refresh: Callable[[str], Awaitable[object]]
    ):
        self.local_store = local_store
        self.pipeline = pipeline
        self.prompter = prompter
        self.refresh = refresh

    async def run(self, user_id: str) -> Optional[int]:
        """
        Check for guest receipts and migrate them if the user agrees.

        Args:
            user_id: Newly signed-in user

        Returns:
            Number of migrated receipts, or None if nothing was attempted
        """
        try:
            receipts = receipts_from_local(self.local_store.load_guest_receipts())
        except ValueError as e:
            logger.error(f"Stored guest receipts are unreadable: {e}")
            return None

        if not receipts:
            return None

        if not await self.prompter.confirm(
            f"You have {len(receipts)} receipts from your guest session.\n\n"
            "Do you want to save them to your account?"
        ):
            if await self.prompter.confirm(
                "Do you want to discard these guest receipts? \n\n"
                "Click OK to delete them, or Cancel to keep them locally "
                "(they won't be visible in your account)."
            ):
                self.local_store.clear_guest_receipts()
                logger.info("Discarded guest receipts")
            return None

        success_count = 0
        # One at a time for a deterministic count
        for receipt in receipts:
            try:
                await self.pipeline.persist_new(user_id, receipt)
                success_count += 1
            except ExpenseTrackerException as e:
                logger.error(f"Failed to migrate receipt {receipt.id}: {e.message}")

        if success_count == 0:
            await self.prompter.alert("Failed to sync receipts.")
            return 0

        self.local_store.clear_guest_receipts()
        logger.info(f"Migrated {success_count} guest receipts for user {user_id}")
        await self.prompter.alert(f"Successfully synced {success_count} receipts!")
        await self.refresh(user_id)
        return success_count
