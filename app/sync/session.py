"""
Offline-first sync session.

One ``SyncSession`` per device. It owns the application state, commits every
change to the local cache before anything goes to the network, and pushes the
complete loan and user collections to the remote store on a best-effort
basis. Pulls replace local collections wholesale (last writer wins).
"""

import logging
from datetime import date, datetime
from typing import Callable, List, Optional

from pydantic import TypeAdapter, ValidationError as SchemaError
from sqlalchemy.exc import SQLAlchemyError

from app.calculations.amortization import build_loan
from app.config import Settings, get_settings
from app.exceptions import (
    AuthenticationError,
    LoanNotFoundError,
    PermissionDeniedError,
    RemoteUnavailableError,
    ValidationError,
)
from app.schemas import (
    LoanAccount,
    RemoteConfig,
    SyncResult,
    SyncStatus,
    UserAccount,
    UserRole,
)
from app.sync.cache import LOANS_KEY, REMOTE_KEY, USERS_KEY, LocalCache
from app.sync.remote import RemoteStore, SqlRemoteStore
from app.sync.state import (
    Action,
    AddLoan,
    AddUser,
    AppState,
    DeleteLoan,
    DeleteRemoteLoan,
    DeleteUser,
    PushCollections,
    ReplaceCollections,
    SetupAdmin,
    ToggleInstallment,
    UpdateLoan,
    WriteCache,
    reduce,
)

logger = logging.getLogger(__name__)

_loans_adapter = TypeAdapter(List[LoanAccount])
_users_adapter = TypeAdapter(List[UserAccount])

RemoteFactory = Callable[[RemoteConfig], RemoteStore]


def make_user(name: str, pin: str, phone: str = "", role: UserRole = UserRole.user) -> UserAccount:
    """Build a UserAccount, reporting bad input as ValidationError."""
    try:
        return UserAccount(name=(name or "").strip(), phone=(phone or "").strip(), pin=pin, role=role)
    except SchemaError as e:
        raise ValidationError("Name and a 4-digit PIN are required", {"errors": e.errors()})


class SyncSession:
    """Application state, local cache and remote store for one device."""

    def __init__(
        self,
        cache: LocalCache,
        remote_factory: RemoteFactory = SqlRemoteStore.from_config,
        settings: Optional[Settings] = None,
    ):
        self.cache = cache
        self.settings = settings or get_settings()
        self._remote_factory = remote_factory
        self._remote: Optional[RemoteStore] = None
        self._remote_url: Optional[str] = None

        self.state = AppState()
        self.status = SyncStatus()
        self.remote_config: Optional[RemoteConfig] = None

        self._push_requested = False
        self._pending_deletions: List[str] = []

    # === Loading ===

    def load(self) -> AppState:
        """Read loans, users and remote settings from the local cache."""
        loans = self._read_cached(LOANS_KEY, _loans_adapter)
        users = self._read_cached(USERS_KEY, _users_adapter)
        self.state = AppState(loans=tuple(loans), users=tuple(users), loaded=True)

        saved_remote = self.cache.get(REMOTE_KEY)
        if saved_remote:
            self.remote_config = RemoteConfig.model_validate(saved_remote)
        else:
            self.remote_config = self._remote_from_env()
        self.status.remote_configured = self.remote_config is not None
        self.status.last_sync = self.remote_config.last_sync if self.remote_config else None

        logger.info(
            f"Loaded {len(loans)} loans and {len(users)} users from local cache"
            f"{' (first run)' if self.state.is_first_run else ''}"
        )
        return self.state

    async def start(self) -> bool:
        """Load local data, then try to pull from the remote store."""
        self.load()
        return await self.pull()

    def _read_cached(self, key: str, adapter: TypeAdapter) -> list:
        raw = self.cache.get(key, [])
        try:
            return adapter.validate_python(raw)
        except SchemaError as e:
            logger.warning(f"Ignoring malformed cached '{key}': {e.error_count()} errors")
            return []

    def _remote_from_env(self) -> Optional[RemoteConfig]:
        if self.settings.remote_database_url:
            return RemoteConfig(database_url=self.settings.remote_database_url)
        return None

    # === Convenience accessors ===

    @property
    def loans(self) -> List[LoanAccount]:
        return list(self.state.loans)

    @property
    def users(self) -> List[UserAccount]:
        return list(self.state.users)

    @property
    def is_first_run(self) -> bool:
        return self.state.is_first_run

    # === Dispatch ===

    def _require_admin(self, actor: Optional[UserAccount]) -> UserAccount:
        current = self.state.find_user(actor.name) if actor else None
        if current is None or not current.is_admin:
            logger.warning(
                f"Rejected mutation from non-admin '{actor.name if actor else None}'"
            )
            raise PermissionDeniedError("Admin access required")
        return current

    def dispatch(self, action: Action, actor: Optional[UserAccount] = None) -> AppState:
        """
        Apply an action and commit it locally.

        Remote effects are queued; call ``flush()`` to send them.

        Raises:
            PermissionDeniedError: Admin-only action from a non-admin caller
            ValidationError, NotFoundError: Rejected by the reducer
        """
        if action.requires_admin:
            self._require_admin(actor)

        transition = reduce(self.state, action)
        self.state = transition.state

        for effect in transition.effects:
            if isinstance(effect, WriteCache):
                self._write_cache()
            elif isinstance(effect, DeleteRemoteLoan):
                self._pending_deletions.append(effect.loan_id)
            elif isinstance(effect, PushCollections):
                self._push_requested = True

        return self.state

    def _write_cache(self):
        self.cache.set_many({
            LOANS_KEY: [loan.model_dump(mode="json") for loan in self.state.loans],
            USERS_KEY: [user.model_dump(mode="json") for user in self.state.users],
        })

    @property
    def has_pending_push(self) -> bool:
        return self._push_requested or bool(self._pending_deletions)

    # === Authentication ===

    def authenticate(self, name: str, pin: str) -> UserAccount:
        """Return the matching account or raise AuthenticationError."""
        user = self.state.find_user(name) if name and name.strip() else None
        if user is None or user.pin != pin:
            logger.info("Failed login attempt")
            raise AuthenticationError()
        return user

    async def login(self, name: str, pin: str) -> UserAccount:
        """Authenticate, then refresh data from the remote store."""
        user = self.authenticate(name, pin)
        await self.pull()
        return user

    def setup_admin(self, name: str, pin: str, phone: str = "") -> UserAccount:
        """Create the one admin account of a fresh install."""
        admin = make_user((name or "").strip() or "Admin", pin, phone, role=UserRole.admin)
        self.dispatch(SetupAdmin(admin))
        logger.info(f"First-run setup created admin '{admin.name}'")
        return admin

    # === Loans ===

    def _check_term(self, months: int):
        if months not in self.settings.supported_terms:
            raise ValidationError(
                f"Installment count must be one of {self.settings.supported_terms}",
                {"months": months},
            )

    def create_loan(
        self,
        actor: UserAccount,
        user_name: str,
        principal,
        start_date: date,
        months: int,
    ) -> LoanAccount:
        self._require_admin(actor)
        self._check_term(months)
        loan = build_loan(
            user_name,
            principal,
            start_date,
            months,
            self.settings.monthly_interest_rate,
            loan_id_prefix=self.settings.loan_id_prefix,
        )
        self.dispatch(AddLoan(loan), actor)
        logger.info(f"Created loan {loan.loan_id} for {loan.user_name}")
        return loan

    def update_loan(
        self,
        actor: UserAccount,
        loan_id: str,
        user_name: Optional[str] = None,
        principal=None,
        start_date: Optional[date] = None,
        months: Optional[int] = None,
    ) -> LoanAccount:
        """Regenerate a loan's schedule, keeping installment status by position."""
        self._require_admin(actor)
        existing = self.state.find_loan(loan_id)
        if existing is None:
            raise LoanNotFoundError(loan_id)

        months = existing.total_installments if months is None else months
        self._check_term(months)
        loan = build_loan(
            user_name if user_name is not None else existing.user_name,
            existing.principal_amount if principal is None else principal,
            start_date or existing.start_date,
            months,
            self.settings.monthly_interest_rate,
            existing=existing,
        )
        self.dispatch(UpdateLoan(loan), actor)
        logger.info(f"Updated loan {loan.loan_id}")
        return loan

    def delete_loan(self, actor: UserAccount, loan_id: str) -> None:
        self.dispatch(DeleteLoan(loan_id), actor)
        logger.info(f"Deleted loan {loan_id}")

    def toggle_installment(self, actor: UserAccount, loan_id: str, installment_id: str) -> LoanAccount:
        self.dispatch(ToggleInstallment(loan_id, installment_id), actor)
        return self.state.find_loan(loan_id)

    # === Users ===

    def add_user(self, actor: UserAccount, name: str, pin: str, phone: str = "") -> UserAccount:
        self._require_admin(actor)
        user = make_user(name, pin, phone)
        self.dispatch(AddUser(user), actor)
        logger.info(f"Added user '{user.name}'")
        return user

    def delete_user(self, actor: UserAccount, name: str) -> None:
        self.dispatch(DeleteUser(name, requested_by=actor.name if actor else ""), actor)
        logger.info(f"Deleted user '{name}'")

    # === Remote ===

    def configure_remote(self, database_url: str, actor: Optional[UserAccount] = None) -> RemoteConfig:
        """Persist remote connection settings on this device.

        Allowed for admins, or for anyone while the device has no accounts so
        a new device can be pointed at the store before restoring.
        """
        if not self.state.is_first_run:
            self._require_admin(actor)
        if not database_url or not database_url.strip():
            raise ValidationError("Remote database URL is required")

        self.remote_config = RemoteConfig(database_url=database_url.strip())
        self.cache.set(REMOTE_KEY, self.remote_config.model_dump(mode="json"))
        self.status.remote_configured = True
        self._remote = None
        return self.remote_config

    def _get_remote(self) -> Optional[RemoteStore]:
        if self.remote_config is None:
            return None
        if self._remote is None or self._remote_url != self.remote_config.database_url:
            try:
                self._remote = self._remote_factory(self.remote_config)
            except (SQLAlchemyError, ImportError) as e:
                # ImportError: the URL names a database driver that is not installed
                self._record_failure(RemoteUnavailableError("Invalid remote settings", {"error": str(e)}))
                return None
            self._remote_url = self.remote_config.database_url
        return self._remote

    def _record_success(self):
        now = datetime.utcnow()
        self.status.last_result = SyncResult.success
        self.status.message = None
        self.status.last_sync = now
        if self.remote_config is not None:
            self.remote_config = self.remote_config.model_copy(update={"last_sync": now})
            self.cache.set(REMOTE_KEY, self.remote_config.model_dump(mode="json"))

    def _record_failure(self, error: RemoteUnavailableError):
        logger.error(f"Sync failed: {error}")
        self.status.last_result = SyncResult.error
        self.status.message = error.message

    async def pull(self) -> bool:
        """
        Replace local loans and users with the remote collections.

        Returns:
            True if the pull completed; False if one was already running, no
            remote is configured, or the remote call failed
        """
        if self.status.is_pulling:
            logger.info("Pull already in progress; ignoring")
            return False

        store = self._get_remote()
        if store is None:
            return False

        self.status.is_pulling = True
        try:
            snapshot = await store.pull()
        except RemoteUnavailableError as e:
            self._record_failure(e)
            return False
        finally:
            self.status.is_pulling = False

        self.dispatch(ReplaceCollections(tuple(snapshot.loans), tuple(snapshot.users)))
        self._record_success()
        logger.info(f"Pulled {len(snapshot.loans)} loans and {len(snapshot.users)} users")
        return True

    async def restore(self) -> bool:
        """Hydrate this device from the remote store, without authentication.

        Returns:
            True if the pull succeeded and brought at least one account
        """
        return await self.pull() and not self.state.is_first_run

    async def push(self, actor: UserAccount) -> bool:
        """Manually re-send both collections (admin only)."""
        self._require_admin(actor)
        self._push_requested = True
        return await self.flush()

    async def flush(self) -> bool:
        """
        Send queued remote effects.

        Mutations committed while a push is in flight are sent by that same
        push. Failures set the status flag and are not retried; loan deletions
        that did not reach the remote stay queued for the next push.

        Returns:
            True if everything queued was sent
        """
        if self.status.is_pushing:
            return False
        if not self.has_pending_push:
            return True

        store = self._get_remote()
        if store is None:
            if self.remote_config is None:
                self._push_requested = False
                self._pending_deletions = []
            return False

        self.status.is_pushing = True
        try:
            while self.has_pending_push:
                self._push_requested = False
                remaining, self._pending_deletions = self._pending_deletions, []
                try:
                    while remaining:
                        await store.delete_loan(remaining[0])
                        remaining.pop(0)
                    await store.push_loans(list(self.state.loans))
                    await store.push_users(list(self.state.users))
                except RemoteUnavailableError as e:
                    self._pending_deletions = remaining + self._pending_deletions
                    self._record_failure(e)
                    return False
                self._record_success()
                logger.info(
                    f"Pushed {len(self.state.loans)} loans and {len(self.state.users)} users"
                )
            return True
        finally:
            self.status.is_pushing = False

    # === Device ===

    def reset_local(self) -> None:
        """Wipe this device's cache and return to first-run. The remote is untouched."""
        self.cache.clear()
        self.state = AppState(loaded=True)
        self.remote_config = self._remote_from_env()
        self._remote = None
        self.status = SyncStatus(remote_configured=self.remote_config is not None)
        self._push_requested = False
        self._pending_deletions = []
        logger.info("Local cache cleared")


# Singleton instance
_sync_session: Optional[SyncSession] = None


def get_sync_session() -> SyncSession:
    """Get the device's sync session singleton, loaded from the local cache."""
    global _sync_session
    if _sync_session is None:
        settings = get_settings()
        _sync_session = SyncSession(LocalCache.from_url(settings.local_cache_url), settings=settings)
        _sync_session.load()
    return _sync_session
