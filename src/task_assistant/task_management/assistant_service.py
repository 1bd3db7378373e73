"""Task assistant service: from free text to applied task actions."""

import asyncio
import logging
import time
from collections.abc import Sequence
from pathlib import Path

from .action_applier import ActionApplier
from .completion import HttpCompletionEngine, OllamaCompletionEngine
from .config import (
    DEFAULT_COMPLETION_URL,
    DEFAULT_DATABASE_PATH,
    DEFAULT_EXTRACTION_TIMEOUT,
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_REST_KEY,
    DEFAULT_REST_URL,
    DEFAULT_USER_ID,
)
from .database import TaskDatabase
from .exceptions import EmptyInputError, ExtractionInProgressError
from .interfaces import CompletionEngine, Notifier, TaskStore
from .models import (
    Action,
    AppliedResult,
    AssistantResult,
    OperationType,
    UserSettings,
)
from .notification_scheduler import NotificationScheduler
from .operation_detector import detect_operation_type, filter_tasks_for_operation
from .rest_store import RestTaskStore
from .task_extractor import TaskExtractor

logger = logging.getLogger(__name__)


class TaskAssistantService:
    """
    Coordinates classification, extraction and application of one request.

    Only one request is processed at a time; a request arriving while another
    is in flight is rejected. Store state is re-read for every request so two
    requests never act on the same stale task list.
    """

    def __init__(
        self,
        extractor: TaskExtractor,
        applier: ActionApplier,
        store: TaskStore,
        notifier: Notifier | None = None,
    ) -> None:
        """
        Initialize Task Assistant Service.

        Args:
            extractor: Turns text into actions
            applier: Applies actions to the store
            store: Task store read for context and settings
            notifier: Reminder scheduler, cleared on shutdown
        """
        self._extractor = extractor
        self._applier = applier
        self._store = store
        self._notifier = notifier
        self._lock = asyncio.Lock()

    @property
    def store(self) -> TaskStore:
        return self._store

    @property
    def busy(self) -> bool:
        """Whether a request is currently being processed."""
        return self._lock.locked()

    def _check_request(self, text: str) -> None:
        if not text or not text.strip():
            raise EmptyInputError("Please enter a task description.")
        if self._lock.locked():
            raise ExtractionInProgressError(
                "Another request is still being processed. Please wait for it to finish."
            )

    async def _extract(
        self, text: str, settings: UserSettings
    ) -> tuple[OperationType, list[Action]]:
        tasks = await self._store.list_tasks()
        folders = await self._store.list_folders()

        operation = detect_operation_type(text)
        context = filter_tasks_for_operation(operation, tasks, text)
        logger.info(
            f"📊 Operation guess: {operation.value}, "
            f"{len(context)} of {len(tasks)} task(s) in context"
        )

        actions = await self._extractor.extract(
            text,
            default_timing=settings.default_timing,
            existing_tasks=context,
            existing_folders=folders,
        )
        return operation, actions

    async def process_text(self, text: str) -> AssistantResult:
        """
        Extract actions from text and apply them.

        Args:
            text: Raw user input

        Returns:
            AssistantResult with one result per applied action

        Raises:
            ExtractionError: If extraction fails; nothing is applied then
        """
        self._check_request(text)

        async with self._lock:
            start_time = time.time()
            logger.info(f"🎯 Processing request: '{text}'")

            settings = await self._store.get_settings()
            operation, actions = await self._extract(text, settings)
            results = await self._applier.apply(
                actions,
                default_timing=settings.default_timing,
                notifications_enabled=settings.notifications,
            )

            result = AssistantResult(
                operation=operation,
                actions=actions,
                results=results,
                processing_time=time.time() - start_time,
            )
            logger.info(
                f"🎉 Applied {result.applied_count}/{len(actions)} action(s), "
                f"processing_time={result.processing_time:.3f}s"
            )
            return result

    async def preview(self, text: str) -> list[Action]:
        """
        Extract actions without applying them.

        Args:
            text: Raw user input

        Returns:
            Extracted actions

        Raises:
            ExtractionError: If extraction fails
        """
        self._check_request(text)

        async with self._lock:
            settings = await self._store.get_settings()
            _, actions = await self._extract(text, settings)
            logger.info(f"👀 Previewed {len(actions)} action(s)")
            return actions

    async def apply_actions(self, actions: Sequence[Action]) -> list[AppliedResult]:
        """
        Apply previously previewed actions with the current settings.

        Args:
            actions: Actions to apply, in order

        Returns:
            One result per action
        """
        settings = await self._store.get_settings()
        return await self._applier.apply(
            actions,
            default_timing=settings.default_timing,
            notifications_enabled=settings.notifications,
        )

    async def shutdown(self) -> None:
        """Cancel reminders and release the engine and store."""
        if self._notifier is not None:
            self._notifier.clear_all_scheduled()
        await self._extractor.close()
        await self._store.close()
        logger.info("Task assistant service shut down")


async def create_assistant_service(
    store: TaskStore,
    engine: CompletionEngine,
    timeout: float | None = None,
    notifier: Notifier | None = None,
) -> TaskAssistantService:
    """
    Build and initialize a service from its collaborators.

    Args:
        store: Task store (initialized here)
        engine: Completion engine
        timeout: Extraction timeout override in seconds
        notifier: Reminder scheduler (a NotificationScheduler by default)

    Returns:
        Ready-to-use TaskAssistantService
    """
    await store.initialize()
    notifier = notifier or NotificationScheduler()
    extractor = (
        TaskExtractor(engine, timeout=timeout) if timeout else TaskExtractor(engine)
    )
    applier = ActionApplier(store, notifier)
    return TaskAssistantService(extractor, applier, store, notifier)


def build_store(
    db_path: str = DEFAULT_DATABASE_PATH,
    user_id: str = DEFAULT_USER_ID,
    rest_url: str | None = DEFAULT_REST_URL,
    rest_key: str | None = DEFAULT_REST_KEY,
) -> TaskStore:
    """
    Choose a task store: the REST row store when configured, else SQLite.

    Args:
        db_path: SQLite database path
        user_id: User every record is scoped to
        rest_url: REST service root
        rest_key: REST API key

    Returns:
        Uninitialized TaskStore
    """
    if rest_url and rest_key:
        logger.info(f"Using REST task store at {rest_url}")
        return RestTaskStore(rest_url, rest_key, user_id=user_id)

    if db_path != ":memory:":
        db_path = str(Path(db_path).expanduser())
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Using SQLite task store at {db_path}")
    return TaskDatabase(db_path, user_id=user_id)


def build_engine(
    kind: str = "http",
    url: str = DEFAULT_COMPLETION_URL,
    model: str = DEFAULT_OLLAMA_MODEL,
    base_url: str = DEFAULT_OLLAMA_BASE_URL,
    timeout: float = DEFAULT_EXTRACTION_TIMEOUT,
) -> CompletionEngine:
    """
    Create a completion engine.

    Args:
        kind: "http" for the extraction endpoint, "ollama" for a local model
        url: Extraction endpoint URL
        model: Ollama model name
        base_url: Ollama service URL
        timeout: HTTP timeout in seconds

    Returns:
        CompletionEngine instance

    Raises:
        ValueError: If kind is unknown
    """
    if kind == "http":
        return HttpCompletionEngine(url=url, timeout=timeout)
    if kind == "ollama":
        return OllamaCompletionEngine(model=model, base_url=base_url)
    raise ValueError(f"Unknown engine type: {kind}")
