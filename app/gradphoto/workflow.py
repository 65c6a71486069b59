"""
Graduation photo workflow.
Drives a photo through initial -> loading -> result / error, with retry and
reset, independent of any web framework.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .clients import BaseGenerator
from .codec import encode
from .compositor import add_caption
from .errors import USER_MESSAGES, ErrorKind, GradPhotoError
from .models import FinalImage, SourceImage
from .progress import ProgressTicker

logger = logging.getLogger(__name__)

DEFAULT_CAPTION = "Graduation Class of 2025"


class WorkflowState(str, Enum):
    INITIAL = "initial"
    LOADING = "loading"
    RESULT = "result"
    ERROR = "error"


class Event(str, Enum):
    FILE_SELECTED = "file_selected"
    GENERATE = "generate"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    RETRY = "retry"
    RESET = "reset"


TRANSITIONS = {
    (WorkflowState.INITIAL, Event.GENERATE): WorkflowState.LOADING,
    (WorkflowState.LOADING, Event.SUCCEEDED): WorkflowState.RESULT,
    (WorkflowState.LOADING, Event.FAILED): WorkflowState.ERROR,
    (WorkflowState.ERROR, Event.RETRY): WorkflowState.LOADING,
}


def transition(state: WorkflowState, event: Event) -> WorkflowState:
    """
    Next state for an event. Events that do not apply leave the state as is.
    """
    if event in (Event.FILE_SELECTED, Event.RESET):
        return WorkflowState.INITIAL
    return TRANSITIONS.get((state, event), state)


@dataclass(frozen=True)
class ErrorInfo:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class WorkflowStatus:
    """Read-only snapshot for the UI."""
    state: WorkflowState
    caption: str
    filename: Optional[str] = None
    progress_message: Optional[str] = None
    error: Optional[ErrorInfo] = None
    has_result: bool = False


class Workflow:
    """
    Single-user graduation photo session.

    All methods must be called from the same event loop. The network call and
    the compositor run in worker threads; their results are only applied if
    the workflow is still loading the same episode that requested them.
    """

    def __init__(
        self,
        generator: BaseGenerator,
        default_caption: str = DEFAULT_CAPTION,
        ticker: Optional[ProgressTicker] = None,
        compositor: Callable[[bytes, str], bytes] = add_caption,
        model_caption: bool = False,
    ):
        self.generator = generator
        self.default_caption = default_caption
        self.ticker = ticker or ProgressTicker()
        self.compositor = compositor
        self.model_caption = model_caption

        self.state = WorkflowState.INITIAL
        self.source: Optional[SourceImage] = None
        self.final_image: Optional[FinalImage] = None
        self.error: Optional[ErrorInfo] = None
        self.caption = default_caption
        self._episode = 0

    def _apply(self, event: Event) -> WorkflowState:
        previous = self.state
        self.state = transition(previous, event)

        if self.state != WorkflowState.ERROR:
            self.error = None
        if previous == WorkflowState.LOADING and self.state != WorkflowState.LOADING:
            self.ticker.cancel()
        if self.state == WorkflowState.LOADING and previous != WorkflowState.LOADING:
            self.ticker.start()

        if previous != self.state:
            logger.info(f"Workflow {previous.value} -> {self.state.value} on {event.value}")
        return self.state

    def _is_current(self, episode: int) -> bool:
        return episode == self._episode and self.state == WorkflowState.LOADING

    @property
    def can_generate(self) -> bool:
        return self.state == WorkflowState.INITIAL and self.source is not None

    def status(self) -> WorkflowStatus:
        return WorkflowStatus(
            state=self.state,
            caption=self.caption,
            filename=self.source.filename if self.source else None,
            progress_message=self.ticker.message if self.state == WorkflowState.LOADING else None,
            error=self.error,
            has_result=self.final_image is not None,
        )

    def select_file(self, source: SourceImage) -> WorkflowState:
        """Load a new photo, discarding any previous result."""
        self._episode += 1
        self.source = source
        self.final_image = None
        logger.info(f"Selected {source.filename} ({source.mime_type}, {len(source.data)} bytes)")
        return self._apply(Event.FILE_SELECTED)

    def set_caption(self, text: str) -> bool:
        """Edit the caption. Only allowed before generation starts."""
        if self.state != WorkflowState.INITIAL:
            return False
        self.caption = text
        return True

    async def generate(self) -> bool:
        """
        Run the full pipeline for the current photo.
        Returns True when a result was published. A no-op unless initial with a photo.
        """
        if not self.can_generate:
            logger.info(f"Ignoring generate in state {self.state.value}")
            return False
        self._apply(Event.GENERATE)
        return await self._run()

    async def retry(self) -> bool:
        """Restart the whole pipeline after a failure."""
        if self.state != WorkflowState.ERROR:
            logger.info(f"Ignoring retry in state {self.state.value}")
            return False
        self._apply(Event.RETRY)
        return await self._run()

    def reset(self) -> WorkflowState:
        """Back to a blank session with the default caption."""
        self._episode += 1
        self.source = None
        self.final_image = None
        self.caption = self.default_caption
        return self._apply(Event.RESET)

    def close(self) -> None:
        self.ticker.cancel()

    async def _run(self) -> bool:
        self._episode += 1
        episode = self._episode
        source = self.source
        caption = self.caption

        try:
            payload = encode(source)
            prompt_caption = caption if self.model_caption else ""
            generated = await asyncio.to_thread(self.generator.generate, payload, prompt_caption)

            if not self._is_current(episode):
                logger.warning(f"Dropping stale generation result for episode {episode}")
                return False

            if caption.strip():
                data = await asyncio.to_thread(self.compositor, generated.data, caption)
                final = FinalImage(data=data, mime_type="image/png")
            else:
                final = FinalImage(data=generated.data, mime_type=generated.mime_type)

        except asyncio.CancelledError:
            # The caller went away; settle the workflow so the ticker stops.
            logger.warning(f"Generation cancelled for {source.filename}")
            self._fail(episode, ErrorInfo(ErrorKind.GENERATION_FAILED, USER_MESSAGES[ErrorKind.GENERATION_FAILED]))
            raise
        except GradPhotoError as e:
            logger.error(f"Generation failed for {source.filename}: {e}")
            return self._fail(episode, ErrorInfo(e.kind, e.user_message))
        except Exception as e:
            logger.exception(f"Unexpected error generating {source.filename}: {e}")
            error = ErrorInfo(ErrorKind.GENERATION_FAILED, USER_MESSAGES[ErrorKind.GENERATION_FAILED])
            return self._fail(episode, error)

        if not self._is_current(episode):
            logger.warning(f"Dropping stale captioned result for episode {episode}")
            return False

        self.final_image = final
        self._apply(Event.SUCCEEDED)
        return True

    def _fail(self, episode: int, error: ErrorInfo) -> bool:
        if not self._is_current(episode):
            logger.warning(f"Dropping stale failure for episode {episode}")
            return False
        self._apply(Event.FAILED)
        self.error = error
        return False
