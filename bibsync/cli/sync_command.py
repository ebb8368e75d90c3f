"""SyncCommand: the operations behind the bibsync commands.

This module wires the engine together (API wrapper, YAML library, metadata
store, lock registry, reconciler) and exposes one method per command. Every
method returns an ExitCode and never raises: errors are run through the error
policy, shown to the user and translated to exit codes in one place.
"""

import logging
from typing import Callable, List, Optional

from bibsync.bibsonomy_client.api_wrapper import APIWrapper
from bibsync.bibsonomy_client.auth import Authenticator
from bibsync.bibsonomy_client.errors import (
    APIUnreachableError,
    ForbiddenError,
    MissingCredentialsError,
    ServiceUnavailableError,
    SyncError,
    UnauthorizedError,
)
from bibsync.library.errors import LibraryError
from bibsync.library.host import LibraryHost
from bibsync.library.models import RegularRecord
from bibsync.library.yaml_library import YamlLibrary
from bibsync.sync.bulk_sync import BulkSyncDriver
from bibsync.sync.error_policy import apply_error_policy, classify_error
from bibsync.sync.errors import ConflictResolutionError
from bibsync.sync.event_router import ChangeEventRouter
from bibsync.sync.locks import LockRegistry
from bibsync.sync.metadata_store import MetadataStore
from bibsync.sync.models import SessionState, SyncFailure, SyncSettings, UploadPolicy
from bibsync.sync.payload_builder import share_url
from bibsync.sync.reconciler import Reconciler
from bibsync.timestamps import format_timestamp, utc_now
from .config import DEFAULT_CONFIG_PATH, DEFAULT_STATE_PATH, ConfigLoader, StateManager
from .errors import CLIError
from .models import ExitCode
from .output import OutputHandler

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[RegularRecord], bool]


def exit_code_for(error: BaseException) -> ExitCode:
    """Map an error to the process exit code."""
    if isinstance(error, ConflictResolutionError):
        return ExitCode.CONFLICTS
    if isinstance(error, (UnauthorizedError, MissingCredentialsError, ForbiddenError)):
        return ExitCode.AUTH_ERROR
    if isinstance(error, (APIUnreachableError, ServiceUnavailableError)):
        return ExitCode.NETWORK_ERROR
    return ExitCode.GENERAL_ERROR


class SyncCommand:
    """Runs bibsync commands against the configured library.

    Example:
        >>> output = OutputHandler(verbosity=1)
        >>> cmd = SyncCommand(output_handler=output)
        >>> exit_code = cmd.sync_entry("R1", wait=True)
        >>> sys.exit(exit_code)
    """

    def __init__(
        self,
        output_handler: Optional[OutputHandler] = None,
        config_path: str = DEFAULT_CONFIG_PATH,
        state_path: str = DEFAULT_STATE_PATH,
        api: Optional[APIWrapper] = None,
        library: Optional[LibraryHost] = None,
    ):
        """Initialize sync command with dependencies.

        Args:
            output_handler: OutputHandler for terminal output (optional)
            config_path: Path to configuration YAML file
            state_path: Path to session state YAML file
            api: API wrapper (optional, built from the environment otherwise)
            library: Library host (optional, the configured YAML library otherwise)
        """
        self.output_handler = output_handler or OutputHandler()
        self.config_path = config_path
        self.state_path = state_path
        self.api = api
        self.library = library
        self.settings: Optional[SyncSettings] = None
        self.session: Optional[SessionState] = None
        self.reconciler: Optional[Reconciler] = None

    # Setup

    def _get_api(self) -> APIWrapper:
        if self.api is None:
            self.api = APIWrapper(Authenticator())
        return self.api

    def _load_session(self) -> SessionState:
        if self.session is None:
            self.session = StateManager.load(self.state_path)
        return self.session

    def _setup(self) -> Reconciler:
        """Load config and state and build the engine.

        Raises:
            ConfigNotFoundError, ConfigError, FilesystemError: Config problems
            LibraryError: If the library cannot be opened
        """
        if self.reconciler is not None:
            return self.reconciler

        logger.info(f"Loading configuration from {self.config_path}")
        self.settings = ConfigLoader.load(self.config_path)
        self._load_session()

        if self.library is None:
            self.library = YamlLibrary.open(self.settings.library_path)

        self.reconciler = Reconciler(
            client=self._get_api(),
            host=self.library,
            metadata_store=MetadataStore(self.library),
            locks=LockRegistry(),
            settings=self.settings,
        )
        return self.reconciler

    def _teardown(self) -> None:
        if self.reconciler is not None:
            self.reconciler.shutdown(wait_for_uploads=True)
        if self.session is not None:
            try:
                StateManager.save(self.state_path, self.session)
            except CLIError as e:
                logger.error(f"Failed to save session state: {e}")
                self.output_handler.warning(f"Could not save session state: {e}")

    def _mark_authenticated(self) -> None:
        self._load_session().authenticated = True

    def _fail(self, error: Exception, operation: str, notify_duplicate: bool = True) -> ExitCode:
        """Report an error and translate it to an exit code."""
        if isinstance(error, (CLIError, LibraryError)):
            logger.error(f"{operation} failed: {error}")
            self.output_handler.error(str(error))
            return ExitCode.GENERAL_ERROR

        if isinstance(error, SyncError):
            message = apply_error_policy(error, self.session, operation, notify_duplicate=notify_duplicate)
            if message:
                self.output_handler.error(message)
            return exit_code_for(error)

        logger.exception(f"Unexpected error during {operation}")
        self.output_handler.error(f"Unexpected error: {error}")
        return ExitCode.GENERAL_ERROR

    def _regular_record(self, record_id: str) -> Optional[RegularRecord]:
        record = self.library.get_record(record_id)
        if not isinstance(record, RegularRecord):
            self.output_handler.error(f"Record {record_id} is an attachment or note, not a regular record")
            return None
        return record

    # Commands

    def sync_entry(
        self,
        record_id: str,
        force: bool = False,
        notify_duplicate: bool = True,
        wait: bool = False,
    ) -> ExitCode:
        """Synchronize a single record and print its share URL.

        Args:
            record_id: Id of a regular record
            force: Push local state even if nothing changed locally
            notify_duplicate: Report duplicate-post errors
            wait: Upload attachments of a new post before returning the post
        """
        try:
            reconciler = self._setup()
            record = self._regular_record(record_id)
            if record is None:
                return ExitCode.GENERAL_ERROR

            policy = UploadPolicy.FOREGROUND if wait else UploadPolicy.BACKGROUND
            with self.output_handler.spinner(f"Synchronizing '{record.title or record_id}'..."):
                post = reconciler.try_synchronize(record, force_update=force, upload_policy=policy)
                if post is not None and not wait:
                    reconciler.wait_for_uploads()

            if post is None:
                self.output_handler.warning(f"Record {record_id} is already being synchronized")
                return ExitCode.GENERAL_ERROR

            self._mark_authenticated()
            self.output_handler.success(f"Synchronized '{record.title or record_id}'")
            self.output_handler.print(share_url(self.api.base_url, post.interhash, self.api.user))
            return ExitCode.SUCCESS

        except Exception as e:
            return self._fail(e, "sync", notify_duplicate=notify_duplicate)

        finally:
            self._teardown()

    def sync_library(self) -> ExitCode:
        """Synchronize every eligible record with a progress bar and error table."""
        try:
            reconciler = self._setup()
            driver = BulkSyncDriver(reconciler, self.library, self.settings)
            fatal: List[SyncFailure] = []

            def on_error(failure: SyncFailure) -> None:
                if classify_error(failure.error).fatal:
                    # Credentials are broken for every remaining record too
                    fatal.append(failure)
                    apply_error_policy(failure.error, self.session, "sync")
                    driver.cancel()

            with self.output_handler.progress_bar() as progress:
                task = progress.add_task("Synchronizing library", total=1.0)

                def on_progress(fraction: float, message: str) -> None:
                    progress.update(task, completed=fraction, description=message)

                failures = driver.sync_library(progress_cb=on_progress, error_cb=on_error)

            report = driver.last_run
            self.output_handler.print_summary(report)
            self.output_handler.print_error_table(failures)

            if report.synced:
                self._mark_authenticated()
            if not report.cancelled:
                self.session.initial_sync_done = True
                self.session.last_library_sync = format_timestamp(utc_now())

            if fatal:
                return exit_code_for(fatal[0].error)
            if any(isinstance(f.error, ConflictResolutionError) for f in failures):
                return ExitCode.CONFLICTS
            if failures:
                return ExitCode.GENERAL_ERROR
            return ExitCode.SUCCESS

        except Exception as e:
            return self._fail(e, "sync")

        finally:
            self._teardown()

    def delete_entry(self, record_id: str, confirm: Optional[ConfirmCallback] = None) -> ExitCode:
        """Delete the BibSonomy post of a record.

        Args:
            record_id: Id of a regular record
            confirm: Yes/no prompt; deletion proceeds without asking when None
        """
        try:
            reconciler = self._setup()
            record = self._regular_record(record_id)
            if record is None:
                return ExitCode.GENERAL_ERROR

            if not reconciler.metadata_store.read(record).is_online:
                self.output_handler.warning(f"Record {record_id} is not on BibSonomy, nothing to delete")
                return ExitCode.SUCCESS

            if confirm is not None and not confirm(record):
                self.output_handler.print("Deletion cancelled")
                return ExitCode.SUCCESS

            with self.output_handler.spinner("Deleting post..."):
                reconciler.delete_online(record)

            self._mark_authenticated()
            self.output_handler.success(f"Deleted '{record.title or record_id}' from BibSonomy")
            return ExitCode.SUCCESS

        except Exception as e:
            return self._fail(e, "delete")

        finally:
            self._teardown()

    def _route(self, action: Callable[[], None], confirm: Optional[ConfirmCallback]) -> List[str]:
        """Run a library mutation with the change-event router attached.

        Returns:
            Messages of the errors the router reported
        """
        reconciler = self._setup()
        errors: List[str] = []

        def on_error(record: RegularRecord, error: Exception, message: Optional[str]) -> None:
            if message:
                errors.append(f"{record.title or record.record_id}: {message}")

        router = ChangeEventRouter(
            reconciler, self.library, reconciler.locks, self.settings, self.session,
            confirm_delete=confirm, on_error=on_error,
        )
        router.attach()
        try:
            action()
            reconciler.wait_for_uploads()
        finally:
            router.detach()
        return errors

    def set_field(self, record_id: str, field_name: str, value: str) -> ExitCode:
        """Change a field of a record; online records follow at semi-auto or higher."""
        try:
            self._setup()
            if self._regular_record(record_id) is None:
                return ExitCode.GENERAL_ERROR

            errors = self._route(lambda: self.library.update_fields(record_id, **{field_name: value}), None)
            self.output_handler.success(f"Set {field_name} of record {record_id}")
            for message in errors:
                self.output_handler.error(message)
            return ExitCode.GENERAL_ERROR if errors else ExitCode.SUCCESS

        except Exception as e:
            return self._fail(e, "sync")

        finally:
            self._teardown()

    def trash_entry(self, record_id: str, confirm: Optional[ConfirmCallback] = None) -> ExitCode:
        """Move a record to the trash; its post is deleted at auto or after confirmation."""
        try:
            self._setup()
            if self._regular_record(record_id) is None:
                return ExitCode.GENERAL_ERROR

            errors = self._route(lambda: self.library.trash(record_id), confirm)
            self.output_handler.success(f"Moved record {record_id} to the trash")
            for message in errors:
                self.output_handler.error(message)
            return ExitCode.GENERAL_ERROR if errors else ExitCode.SUCCESS

        except Exception as e:
            return self._fail(e, "delete")

        finally:
            self._teardown()

    def check_auth(self) -> ExitCode:
        """Validate the credentials against BibSonomy and list the user's groups."""
        try:
            self._load_session()
            api = self._get_api()
            with self.output_handler.spinner("Checking credentials..."):
                groups = api.get_user_groups()

            self.session.authenticated = True
            self.output_handler.success(f"Authenticated as {api.user} on {api.base_url}")
            if groups:
                self.output_handler.print(f"Groups: {', '.join(groups)}")
            else:
                self.output_handler.print("Groups: (none)")
            return ExitCode.SUCCESS

        except Exception as e:
            return self._fail(e, "check-auth")

        finally:
            self._teardown()
