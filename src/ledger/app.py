"""Expense ledger: wires session routing, the receipt collection and account features."""

import asyncio
import logging
from typing import List, Optional

from shared.config import AppConfig, load_config
from shared.local_store import LocalStore
from shared.images import resize_image
from shared.validators import (
    validate_amount,
    validate_currency_code,
    validate_date,
    validate_display_name,
    validate_time,
    sanitize_string
)
from shared.exceptions import (
    ExpenseTrackerException,
    ExtractionError,
    ModeTransitionError,
    ValidationError
)
from auth.cognito_utils import CognitoClient
from auth.session import AuthEvent, AuthSessionProvider, Session
from account.settings import SettingsBootstrap, UserSettings, UserSettingsRepository
from account.feedback import FeedbackRepository
from currency.rates import ExchangeRateService
from extraction.gemini import GeminiReceiptExtractor
from receipts.models import ExpenseCategory, ExpenseType, Receipt
from receipts.repository import ReceiptRepository
from ledger.modes import Mode, SessionState
from ledger.prompts import UserPrompter
from ledger.resolver import SessionResolver
from ledger.store import ReceiptCollectionStore
from ledger.mutations import MANUAL_ENTRY_FAILED, MutationPipeline
from ledger.migration import GuestMigration

logger = logging.getLogger(__name__)

BACKEND_UNREACHABLE_MESSAGE = "Cannot reach the server. Check your connection and retry."
FEEDBACK_LOGIN_REQUIRED = "You must be logged in to send feedback."
FEEDBACK_FAILED = "Failed to send feedback. Please try again."
SETTINGS_FAILED = "Failed to save settings"


class ExpenseLedger:
    """
    Top-level owner of the receipt collection and session state.

    Every public operation catches failures at its boundary; problems are
    reported through the prompter or ``last_error``.
    """

    def __init__(
        self,
        config: AppConfig,
        prompter: UserPrompter,
        local_store: LocalStore,
        auth: AuthSessionProvider,
        receipts: ReceiptRepository,
        settings: UserSettingsRepository,
        feedback: FeedbackRepository,
        rate_service: ExchangeRateService,
        extractor: Optional[GeminiReceiptExtractor] = None
    ):
        self.config = config
        self.prompter = prompter
        self.local_store = local_store
        self.auth = auth
        self.settings_repository = settings
        self.feedback_repository = feedback
        self.rate_service = rate_service
        self.extractor = extractor

        self.resolver = SessionResolver(auth, local_store)
        self.store = ReceiptCollectionStore(
            receipts,
            local_store,
            target_currency=config.default_currency,
            signed_url_ttl=config.signed_url_ttl
        )
        self.pipeline = MutationPipeline(
            self.store,
            receipts,
            lambda: self.resolver.state,
            prompter,
            on_third_receipt=self._schedule_donation_prompt
        )
        self.migration = GuestMigration(local_store, self.pipeline, prompter, self.refresh_receipts)
        self.bootstrap = SettingsBootstrap(settings, auth.get_user, config.default_currency)

        self.user_name = ''
        self.name_prompt_required = False
        self.last_error: Optional[str] = None
        self.capture_open = False
        self.uploading = False
        self.show_donation_prompt = False
        self.donation_prompts_scheduled = 0
        self._unsubscribe = None

    # State

    @property
    def state(self) -> SessionState:
        return self.resolver.state

    @property
    def mode(self) -> Mode:
        return self.resolver.state.mode

    @property
    def target_currency(self) -> str:
        return self.store.target_currency

    @property
    def receipts(self) -> List[Receipt]:
        return self.store.receipts

    @property
    def display_receipts(self) -> List[Receipt]:
        return self.store.display_receipts

    @property
    def selected_receipt(self) -> Optional[Receipt]:
        return self.store.selected_receipt

    # Startup and routing

    async def start(self) -> SessionState:
        """
        Start the ledger.

        The rate-table fetch and the session check run concurrently; the
        display list treats missing rates as no conversion until they arrive.
        """
        if self._unsubscribe is None:
            self._unsubscribe = self.auth.on_auth_state_change(self._handle_auth_change)

        await asyncio.gather(self._load_rates(), self._start_session())
        return self.state

    async def retry(self) -> SessionState:
        """Re-run startup after the backend was unreachable."""
        if self.mode != Mode.BACKEND_UNREACHABLE:
            return self.state

        self.last_error = None
        if self.store.rates is None:
            await asyncio.gather(self._load_rates(), self._start_session())
        else:
            await self._start_session()
        return self.state

    def close(self) -> None:
        """Stop listening for auth changes."""
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    async def _load_rates(self) -> None:
        rates = await asyncio.to_thread(self.rate_service.fetch_rates)
        self.store.set_rates(rates)

    async def _start_session(self) -> None:
        state = await self.resolver.resolve_startup()
        await self._enter(state)

    async def _handle_auth_change(self, event: AuthEvent, session: Optional[Session]) -> None:
        previous = self.state
        state = self.resolver.route(session)

        if event == AuthEvent.TOKEN_REFRESHED and state == previous:
            return

        await self._enter(state)

    async def _enter(self, state: SessionState) -> None:
        if state.mode == Mode.AUTHENTICATED:
            self.last_error = None
            await asyncio.gather(
                self._bootstrap_settings(state.user_id),
                self.refresh_receipts(state.user_id),
                self._migrate_guest_receipts(state.user_id)
            )
        elif state.mode == Mode.GUEST:
            self._load_guest_receipts()
        elif state.mode == Mode.UNAUTHENTICATED:
            self.store.clear()
            self.user_name = ''
            self.name_prompt_required = False
        else:
            self.last_error = BACKEND_UNREACHABLE_MESSAGE

    async def _bootstrap_settings(self, user_id: str) -> None:
        try:
            result = await self.bootstrap.bootstrap(user_id)
        except ExpenseTrackerException as e:
            logger.error(f"Error fetching settings for user {user_id}: {e.message}")
            return

        self.store.set_target_currency(result.currency)
        self.user_name = result.name
        self.name_prompt_required = result.name_prompt_required

    async def refresh_receipts(self, user_id: Optional[str] = None) -> List[Receipt]:
        """Reload the authenticated user's receipts from the backend."""
        user_id = user_id or self.state.user_id
        if not user_id:
            return self.store.receipts

        try:
            return await self.store.load_remote(user_id)
        except ExpenseTrackerException as e:
            logger.error(f"Error fetching receipts: {e.message}")
            self.last_error = e.message
            return self.store.receipts

    async def _migrate_guest_receipts(self, user_id: str) -> None:
        try:
            await self.migration.run(user_id)
        except ExpenseTrackerException as e:
            logger.error(f"Guest migration failed: {e.message}")

    def _load_guest_receipts(self) -> None:
        try:
            self.store.load_local()
        except ValueError as e:
            logger.error(f"Stored guest receipts are unreadable: {e}")
            self.store.clear()

    # Mode transitions

    def continue_as_guest(self) -> SessionState:
        """Use the app without an account; receipts stay on this device."""
        try:
            state = self.resolver.continue_as_guest()
        except ModeTransitionError as e:
            self.last_error = e.message
            return self.state

        self.last_error = None
        self._load_guest_receipts()
        return state

    def leave_guest(self) -> SessionState:
        """Return from guest mode to the login screen."""
        state = self.resolver.leave_guest()
        if state.mode == Mode.UNAUTHENTICATED:
            self.store.clear()
        return state

    async def logout(self) -> SessionState:
        """Sign out, or leave guest mode. Never ends in guest mode."""
        if self.state.is_authenticated:
            await self.sign_out()
            return self.state
        return self.leave_guest()

    # Receipts

    def select_receipt(self, receipt_id: Optional[str]) -> Optional[Receipt]:
        self.store.select(receipt_id)
        return self.store.selected_receipt

    def close_detail(self) -> None:
        self.store.clear_selection()

    def set_target_currency(self, currency: str) -> None:
        """Change the display currency locally. The display list follows."""
        self.store.set_target_currency(currency)

    def open_capture(self) -> None:
        self.capture_open = True

    async def scan_receipt(self, image_data: str) -> Optional[Receipt]:
        """
        Extract a receipt from a photo and add it to the collection.

        Args:
            image_data: Image as a data URL, downscaled before analysis

        Returns:
            The created receipt, or None if the photo is unreadable or extraction failed
        """
        if not self.state.can_edit:
            self.last_error = f"Receipts cannot be added in {self.mode.value} mode"
            return None

        if self.extractor is None:
            await self.prompter.alert("Receipt scanning is not configured.")
            return None

        try:
            image_data = await asyncio.to_thread(resize_image, image_data)
        except ValidationError as e:
            logger.error(f"Receipt photo rejected: {e.message}")
            await self.prompter.alert(f"Failed to analyze receipt: {e.message}")
            return None

        self.uploading = True
        try:
            receipt = await self.extractor.analyze(image_data, self.store.target_currency)
        except ExtractionError as e:
            logger.error(f"Receipt extraction failed: {e.message}")
            await self.prompter.alert(f"Failed to analyze receipt: {e.message}")
            return None
        finally:
            self.uploading = False

        return await self.create_receipt(receipt)

    async def add_manual_entry(
        self,
        merchant_name: str,
        amount: float,
        currency: str,
        date: str,
        time: str = '12:00',
        merchant_address: str = '',
        vat: float = 0.0,
        category: str = ExpenseCategory.OTHER.value,
        expense_type: str = ExpenseType.PRIVATE.value
    ) -> Optional[Receipt]:
        """
        Add a receipt entered by hand. Manual entries carry no image.

        Returns:
            The created receipt, or None if the entry is invalid
        """
        try:
            receipt = Receipt(
                merchant_name=sanitize_string(merchant_name, max_length=200),
                merchant_address=sanitize_string(merchant_address, max_length=500),
                date=validate_date(date),
                time=validate_time(time),
                amount=float(validate_amount(amount)),
                currency=validate_currency_code(currency),
                vat=float(validate_amount(vat)),
                category=ExpenseCategory(category),
                type=ExpenseType(expense_type)
            )
        except ValidationError as e:
            self.last_error = e.message
            return None
        except ValueError as e:
            self.last_error = str(e)
            return None

        return await self.create_receipt(receipt, failure_message=MANUAL_ENTRY_FAILED)

    async def create_receipt(self, receipt: Receipt, **kwargs) -> Optional[Receipt]:
        # Capture closes before the remote save starts
        self.capture_open = False
        try:
            return await self.pipeline.create(receipt, **kwargs)
        except ModeTransitionError as e:
            self.last_error = e.message
            return None

    async def update_receipt(self, receipt: Receipt) -> Optional[Receipt]:
        try:
            return await self.pipeline.update(receipt)
        except ModeTransitionError as e:
            self.last_error = e.message
            return None

    async def delete_receipt(self, receipt_id: str) -> bool:
        try:
            return await self.pipeline.delete(receipt_id)
        except ModeTransitionError as e:
            self.last_error = e.message
            return False

    def _schedule_donation_prompt(self) -> None:
        self.donation_prompts_scheduled += 1
        loop = asyncio.get_running_loop()
        loop.call_later(self.config.donation_prompt_delay, self._show_donation_prompt)

    def _show_donation_prompt(self) -> None:
        self.show_donation_prompt = True

    def dismiss_donation_prompt(self) -> None:
        self.show_donation_prompt = False

    # Account

    async def save_settings(self, currency: str, name: str) -> bool:
        """
        Save the display currency and name.

        Completes the forced name prompt when it is showing.

        Returns:
            True if the settings were saved
        """
        try:
            currency = validate_currency_code(currency)
            name = validate_display_name(name)
        except ValidationError as e:
            self.last_error = e.message
            return False

        self.store.set_target_currency(currency)
        self.user_name = name

        if self.state.is_authenticated:
            settings = UserSettings(
                user_id=self.state.user_id,
                preferred_currency=currency,
                full_name=name
            )
            try:
                await asyncio.to_thread(self.settings_repository.save_settings, settings)
            except ExpenseTrackerException as e:
                logger.error(f"Error saving settings: {e.message}")
                await self.prompter.alert(SETTINGS_FAILED)
                return False

        self.name_prompt_required = False
        return True

    async def submit_feedback(self, message: str) -> bool:
        """Send feedback. Only signed-in users can send feedback."""
        if not self.state.is_authenticated:
            self.last_error = FEEDBACK_LOGIN_REQUIRED
            return False

        try:
            await asyncio.to_thread(
                self.feedback_repository.submit_feedback, self.state.user_id, message
            )
        except ValidationError as e:
            self.last_error = e.message
            return False
        except ExpenseTrackerException as e:
            logger.error(f"Error sending feedback: {e.message}")
            self.last_error = FEEDBACK_FAILED
            return False

        self.last_error = None
        return True

    def _backend_available(self) -> bool:
        if self.mode == Mode.BACKEND_UNREACHABLE:
            self.last_error = BACKEND_UNREACHABLE_MESSAGE
            return False
        return True

    async def sign_in(self, email: str, password: str) -> bool:
        """Sign in with email and password. Routing follows the auth notification."""
        if not self._backend_available():
            return False
        try:
            await self.auth.sign_in_with_password(email, password)
        except ExpenseTrackerException as e:
            self.last_error = e.message
            return False
        return True

    async def sign_up(self, email: str, password: str, name: str) -> bool:
        if not self._backend_available():
            return False
        try:
            await self.auth.sign_up(email, password, name)
        except ExpenseTrackerException as e:
            self.last_error = e.message
            return False
        return True

    async def confirm_sign_up(self, email: str, confirmation_code: str) -> bool:
        if not self._backend_available():
            return False
        try:
            await self.auth.confirm_sign_up(email, confirmation_code)
        except ExpenseTrackerException as e:
            self.last_error = e.message
            return False
        return True

    def authorize_url(self, identity_provider: str, redirect_uri: str) -> Optional[str]:
        """Hosted-UI URL for signing in with an external identity provider."""
        try:
            return self.auth.authorize_url(identity_provider, redirect_uri)
        except ValidationError as e:
            self.last_error = e.message
            return None

    async def complete_oauth_redirect(self, callback_url: str) -> bool:
        if not self._backend_available():
            return False
        try:
            await self.auth.complete_oauth_redirect(callback_url)
        except ExpenseTrackerException as e:
            self.last_error = e.message
            return False
        return True

    async def sign_out(self) -> None:
        await self.auth.sign_out()


def build_ledger(
    prompter: UserPrompter,
    config: Optional[AppConfig] = None,
    local_store: Optional[LocalStore] = None
) -> ExpenseLedger:
    """
    Create a ledger wired to AWS, the rate API and Gemini.

    Args:
        prompter: Dialog implementation of the hosting UI
        config: Configuration (default: environment plus cached setup credentials)
        local_store: Device store (default: file at the configured path)

    Returns:
        Unstarted ledger
    """
    if config is None:
        config = load_config()
        local_store = local_store or LocalStore(config.local_store_path)
        config = load_config(setup_credentials=local_store.get_setup_credentials())
    elif local_store is None:
        local_store = LocalStore(config.local_store_path)

    auth = AuthSessionProvider(CognitoClient(config), local_store)
    extractor = None
    if config.gemini_api_key:
        extractor = GeminiReceiptExtractor(config.gemini_api_key, config.gemini_model)

    return ExpenseLedger(
        config=config,
        prompter=prompter,
        local_store=local_store,
        auth=auth,
        receipts=ReceiptRepository(config),
        settings=UserSettingsRepository(config),
        feedback=FeedbackRepository(config),
        rate_service=ExchangeRateService(config.exchange_rate_url),
        extractor=extractor
    )
