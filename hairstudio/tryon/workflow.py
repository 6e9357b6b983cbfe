"""
Workflow Controller
Upload -> style selection -> generation -> result state machine.

All state changes go through transition(), a pure function over an
immutable WorkflowState. WorkflowController owns the single current state
and runs generations off the event loop.
"""
import asyncio
import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple, Union

from .catalog import StyleCatalog
from .clients.base import BaseGenerator
from .errors import ErrorKind, GenerationError

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Failed to generate hairstyle. Please try again."


class Step(str, Enum):
    UPLOAD = "UPLOAD"
    SELECT_STYLE = "SELECT_STYLE"
    PROCESSING = "PROCESSING"
    RESULT = "RESULT"


@dataclass(frozen=True)
class GeneratedResult:
    """Before/after pair produced by a successful generation."""
    original: str
    result: str
    style_applied: str


@dataclass(frozen=True)
class WorkflowState:
    step: Step = Step.UPLOAD
    uploaded_image: Optional[str] = None
    selected_style_id: Optional[str] = None
    generated_result: Optional[GeneratedResult] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    # Incremented each time a generation starts; late outcomes of older attempts are dropped
    attempt: int = 0

    def check_invariants(self) -> None:
        if self.step != Step.UPLOAD and not self.uploaded_image:
            raise AssertionError(f"{self.step.value} requires an uploaded image")
        if self.step == Step.RESULT and self.generated_result is None:
            raise AssertionError("RESULT requires a generated result")
        if self.step == Step.PROCESSING and not self.selected_style_id:
            raise AssertionError("PROCESSING requires a selected style")
        if self.error is not None and self.step != Step.SELECT_STYLE:
            raise AssertionError(f"errors are only attached to SELECT_STYLE, not {self.step.value}")


# Events

@dataclass(frozen=True)
class ImageSelected:
    image: str


@dataclass(frozen=True)
class StyleChosen:
    style_id: str


@dataclass(frozen=True)
class ApplyRequested:
    pass


@dataclass(frozen=True)
class GenerationSucceeded:
    attempt: int
    image: str


@dataclass(frozen=True)
class GenerationFailed:
    attempt: int
    message: str
    kind: ErrorKind = ErrorKind.UPSTREAM


@dataclass(frozen=True)
class ResetRequested:
    pass


@dataclass(frozen=True)
class TryAnotherRequested:
    pass


@dataclass(frozen=True)
class ErrorDismissed:
    pass


Event = Union[
    ImageSelected, StyleChosen, ApplyRequested, GenerationSucceeded,
    GenerationFailed, ResetRequested, TryAnotherRequested, ErrorDismissed,
]


def transition(state: WorkflowState, event: Event, catalog: StyleCatalog) -> WorkflowState:
    """
    Compute the next state. Events that are not valid for the current
    step return the state unchanged.
    """
    step = state.step

    if isinstance(event, ImageSelected):
        if step == Step.UPLOAD and event.image:
            return replace(state, step=Step.SELECT_STYLE, uploaded_image=event.image,
                           error=None, error_kind=None)
        return state

    if isinstance(event, StyleChosen):
        if step == Step.SELECT_STYLE and event.style_id in catalog:
            return replace(state, selected_style_id=event.style_id)
        return state

    if isinstance(event, ApplyRequested):
        if (step == Step.SELECT_STYLE and state.uploaded_image
                and catalog.find_style(state.selected_style_id) is not None):
            return replace(state, step=Step.PROCESSING, error=None, error_kind=None,
                           generated_result=None, attempt=state.attempt + 1)
        return state

    if isinstance(event, GenerationSucceeded):
        if step != Step.PROCESSING or event.attempt != state.attempt:
            return state
        style = catalog.find_style(state.selected_style_id)
        result = GeneratedResult(
            original=state.uploaded_image,
            result=event.image,
            style_applied=style.name if style else state.selected_style_id,
        )
        return replace(state, step=Step.RESULT, generated_result=result)

    if isinstance(event, GenerationFailed):
        if step != Step.PROCESSING or event.attempt != state.attempt:
            return state
        return replace(state, step=Step.SELECT_STYLE,
                       error=event.message or GENERIC_FAILURE_MESSAGE, error_kind=event.kind)

    if isinstance(event, ResetRequested):
        if step == Step.UPLOAD:
            return state
        return WorkflowState(attempt=state.attempt)

    if isinstance(event, TryAnotherRequested):
        if step == Step.RESULT:
            return replace(state, step=Step.SELECT_STYLE, generated_result=None)
        return state

    if isinstance(event, ErrorDismissed):
        if step == Step.SELECT_STYLE:
            return replace(state, error=None, error_kind=None)
        return state

    raise TypeError(f"Unknown workflow event: {event!r}")


@dataclass(frozen=True)
class GenerationTicket:
    """Everything a single generation attempt needs, captured at start."""
    attempt: int
    image: str
    style_id: str
    style_name: str
    style_description: str


class WorkflowController:
    """
    Holds the current WorkflowState and accepts user intents.
    """

    def __init__(self, catalog: StyleCatalog, generator: BaseGenerator):
        self.catalog = catalog
        self.generator = generator
        self._state = WorkflowState()
        self._lock = threading.Lock()

    @property
    def state(self) -> WorkflowState:
        return self._state

    def snapshot(self) -> WorkflowState:
        return self._state

    def dispatch(self, event: Event) -> WorkflowState:
        return self._advance(event)[1]

    def _advance(self, event: Event) -> Tuple[WorkflowState, WorkflowState]:
        # Routes and background generations dispatch from different threads.
        with self._lock:
            previous = self._state
            current = transition(previous, event, self.catalog)
            self._state = current
        if current.step != previous.step:
            logger.info(f"Workflow {previous.step.value} -> {current.step.value}")
        return previous, current

    # Intents

    def select_image(self, image: str) -> WorkflowState:
        return self.dispatch(ImageSelected(image))

    def select_style(self, style_id: str) -> WorkflowState:
        return self.dispatch(StyleChosen(style_id))

    def reset_to_upload(self) -> WorkflowState:
        return self.dispatch(ResetRequested())

    def try_another_style(self) -> WorkflowState:
        return self.dispatch(TryAnotherRequested())

    def dismiss_error(self) -> WorkflowState:
        return self.dispatch(ErrorDismissed())

    def start_generation(self) -> Optional[GenerationTicket]:
        """
        Enter PROCESSING if an image and a style are present.

        Returns:
            Ticket for run_generation, or None if the request was not accepted
        """
        before, after = self._advance(ApplyRequested())
        if after is before:
            logger.info("Apply ignored: image and style are required in SELECT_STYLE")
            return None

        style = self.catalog.get_style(after.selected_style_id)
        return GenerationTicket(
            attempt=after.attempt,
            image=after.uploaded_image,
            style_id=style.id,
            style_name=style.name,
            style_description=style.description,
        )

    async def run_generation(self, ticket: GenerationTicket) -> WorkflowState:
        """
        Perform the generation for ticket and feed the outcome back.
        Outcomes for an abandoned attempt are ignored by transition().
        """
        try:
            image = await asyncio.to_thread(
                self.generator.generate,
                ticket.image,
                ticket.style_name,
                ticket.style_description,
            )
        except GenerationError as e:
            logger.error(f"Generation failed ({e.kind.value}): {e.message}")
            return self.dispatch(GenerationFailed(ticket.attempt, e.message, e.kind))
        except Exception as e:
            logger.exception(f"Unexpected error during generation: {e}")
            return self.dispatch(GenerationFailed(ticket.attempt, GENERIC_FAILURE_MESSAGE))

        if ticket.attempt != self._state.attempt or self._state.step != Step.PROCESSING:
            logger.info(f"Discarding result of abandoned attempt {ticket.attempt}")
            return self._state
        return self.dispatch(GenerationSucceeded(ticket.attempt, image))

    async def apply_generation(self) -> WorkflowState:
        """Start a generation and wait for its outcome."""
        ticket = self.start_generation()
        if ticket is None:
            return self._state
        return await self.run_generation(ticket)
