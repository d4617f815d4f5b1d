import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Union
from uuid import uuid4

logger = logging.getLogger(__name__)


class ConfirmationKind(str, Enum):
    """Severity of the action being confirmed."""

    DELETE = "delete"
    WARNING = "warning"
    INFO = "info"


class ConfirmEmphasis(str, Enum):
    """Styling of the confirm control."""

    DEFAULT = "default"
    DESTRUCTIVE = "destructive"
    OUTLINE = "outline"
    SECONDARY = "secondary"
    GHOST = "ghost"
    LINK = "link"


@dataclass(frozen=True)
class ConfirmationOptions:
    """What the user is asked to confirm."""

    title: str
    description: str
    confirm_label: str = "Delete"
    cancel_label: str = "Cancel"
    kind: ConfirmationKind = ConfirmationKind.DELETE
    emphasis: ConfirmEmphasis = ConfirmEmphasis.DESTRUCTIVE


@dataclass(frozen=True)
class Ok:
    """The action completed."""


@dataclass(frozen=True)
class Err:
    """The action failed. The action itself is responsible for telling the user."""

    reason: str = ""


ActionResult = Union[Ok, Err]
Action = Callable[[], Awaitable[ActionResult]]


@dataclass(eq=False)
class PendingConfirmation:
    """A confirmation waiting for the user, compared by identity.

    The token identifies the prompt shown for this confirmation, so a button
    on an outdated prompt can be told apart from one on the current prompt.
    """

    options: ConfirmationOptions
    action: Action
    pending: bool = False
    token: str = field(default_factory=lambda: uuid4().hex[:12])


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class AwaitingConfirmation:
    slot: PendingConfirmation


@dataclass(frozen=True)
class Running:
    slot: PendingConfirmation


WorkflowState = Union[Idle, AwaitingConfirmation, Running]


class ConfirmationWorkflow:
    """Single-slot gate between requesting a destructive action and running it.

    Only one confirmation is held at a time; a new request replaces the old one.
    The action runs only from confirm_and_run(), at most once per press, and
    never while a previous action of this workflow is still in flight.
    """

    def __init__(self):
        self._slot: PendingConfirmation | None = None
        self._in_flight: PendingConfirmation | None = None

    @property
    def state(self) -> WorkflowState:
        if self._slot is None:
            return Idle()
        if self._slot.pending:
            return Running(self._slot)
        return AwaitingConfirmation(self._slot)

    @property
    def visible(self) -> bool:
        return self._slot is not None

    @property
    def pending(self) -> bool:
        return self._slot is not None and self._slot.pending

    @property
    def options(self) -> ConfirmationOptions | None:
        return self._slot.options if self._slot is not None else None

    @property
    def token(self) -> str | None:
        return self._slot.token if self._slot is not None else None

    @property
    def in_flight(self) -> bool:
        """True while any action started by this workflow has not settled."""
        return self._in_flight is not None

    def request(self, options: ConfirmationOptions, action: Action) -> None:
        """Ask for confirmation before running action.

        Replaces any existing confirmation. The action is not invoked here.
        """
        self._slot = PendingConfirmation(options=options, action=action)
        logger.debug(f"Confirmation requested: {options.title}")

    def dismiss(self) -> bool:
        """Close the confirmation unless its action is running.

        Returns:
            True if a confirmation was cleared.
        """
        if self._slot is None or self._slot.pending:
            return False

        logger.debug(f"Confirmation dismissed: {self._slot.options.title}")
        self._slot = None
        return True

    async def confirm_and_run(self) -> ActionResult | None:
        """Run the confirmed action once and settle the slot it came from.

        Returns:
            The action's result, or None if nothing was run.
        """
        slot = self._slot
        if slot is None or slot.pending or self._in_flight is not None:
            return None

        slot.pending = True
        self._in_flight = slot
        logger.debug(f"Running confirmed action: {slot.options.title}")

        try:
            try:
                result = await slot.action()
            except Exception as e:
                result = Err(reason=str(e))
        finally:
            self._in_flight = None
            slot.pending = False

        if not isinstance(result, (Ok, Err)):
            result = Err(reason=f"Action returned {type(result).__name__}, expected Ok or Err")

        # A newer request may have replaced the slot while the action ran
        if self._slot is not slot:
            logger.debug(f"Settled action no longer current: {slot.options.title}")
        elif isinstance(result, Ok):
            self._slot = None
        else:
            logger.debug(f"Confirmed action failed, awaiting confirmation again: {slot.options.title}")

        return result


class ConfirmationManager:
    """Holds one confirmation workflow per user."""

    def __init__(self):
        self._workflows: dict[int, ConfirmationWorkflow] = {}

    def workflow(self, user_id: int) -> ConfirmationWorkflow:
        """Get the workflow for a user, creating it on first use."""
        workflow = self._workflows.get(user_id)
        if workflow is None:
            workflow = ConfirmationWorkflow()
            self._workflows[user_id] = workflow
        return workflow

    def request(self, user_id: int, options: ConfirmationOptions, action: Action) -> None:
        """Store a confirmation for a user, replacing any existing one."""
        self.workflow(user_id).request(options, action)

    def get_pending(self, user_id: int) -> ConfirmationOptions | None:
        """Get the options of the user's open confirmation, if any."""
        workflow = self._workflows.get(user_id)
        if workflow is None:
            return None
        return workflow.options

    async def confirm(self, user_id: int) -> ActionResult | None:
        """Run the user's confirmed action."""
        workflow = self._workflows.get(user_id)
        if workflow is None:
            return None
        return await workflow.confirm_and_run()

    def dismiss(self, user_id: int) -> bool:
        """Dismiss the user's confirmation if it is not running."""
        workflow = self._workflows.get(user_id)
        if workflow is None:
            return False
        return workflow.dismiss()
