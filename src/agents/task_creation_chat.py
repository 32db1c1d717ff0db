"""Conversational personal-task creation.

One user turn runs through an explicit state machine:

    GATHERING --(model calls create_personal_task)--> TOOL_INVOCATION_PENDING
    TOOL_INVOCATION_PENDING --(task saved)--> CONFIRMED
    TOOL_INVOCATION_PENDING --(invalid schedule)--> GATHERING
    TOOL_INVOCATION_PENDING --(persistence failure)--> FAILED
    GATHERING --(provider failure)--> FAILED

CONFIRMED and FAILED are terminal and answered with fixed templates; GATHERING
returns the model's own follow-up question.
"""

import logging
from dataclasses import dataclass, field
from enum import StrEnum

import logfire
from pydantic import BaseModel, Field, ValidationError
from pydantic_ai import Agent, RunContext
from pydantic_ai.messages import ModelMessage, ModelRequest, ModelResponse, TextPart, UserPromptPart

from src.agents import agent_instance
from src.agents.base import Deps
from src.core import db_client
from src.core.errors import InvalidScheduleError, UnresolvedScopeReference, classify_agent_error
from src.domain.chat import ChatRole
from src.domain.schedule import RecurringSchedule
from src.domain.task import Task
from src.services import task_service


logger = logging.getLogger(__name__)


class CreationState(StrEnum):
    """States of a task-creation turn."""

    GATHERING = "gathering"
    TOOL_INVOCATION_PENDING = "tool_invocation_pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


TRANSITIONS: dict[CreationState, set[CreationState]] = {
    CreationState.GATHERING: {CreationState.TOOL_INVOCATION_PENDING, CreationState.FAILED},
    CreationState.TOOL_INVOCATION_PENDING: {
        CreationState.CONFIRMED,
        CreationState.GATHERING,
        CreationState.FAILED,
    },
    CreationState.CONFIRMED: set(),
    CreationState.FAILED: set(),
}

CONFIRMED_TEMPLATES = {
    "uz": (
        'Ajoyib! "{title}" nomli yangi vazifangiz muvaffaqiyatli yaratildi. '
        "Boshqaruv panelidan yoki profilingizdan uni topishingiz mumkin."
    ),
    "en": 'Great! Your new task "{title}" has been created. You can find it on your dashboard or profile.',
}

FAILED_MESSAGES = {
    "uz": "Kechirasiz, vazifani saqlashda xatolik yuz berdi. Iltimos, keyinroq qayta urinib ko'ring.",
    "en": "Sorry, something went wrong while saving the task. Please try again later.",
}

DESCRIPTION_TEMPLATE = "AI yordamida yaratildi: {title}"


class InvalidTransitionError(RuntimeError):
    """Raised when a transition is not allowed from the current state."""


@dataclass
class CreationSession:
    """State of one task-creation turn."""

    state: CreationState = CreationState.GATHERING
    task: Task | None = None
    error: str | None = None

    def transition(self, target: CreationState) -> None:
        if target not in TRANSITIONS[self.state]:
            msg = f"Cannot move from {self.state} to {target}"
            raise InvalidTransitionError(msg)
        logger.debug("Task creation transition", extra={"from_state": self.state.value, "to_state": target.value})
        self.state = target


@dataclass
class CreationDeps(Deps):
    session: CreationSession = field(default_factory=CreationSession)


class CreatePersonalTask(BaseModel):
    """Parameters for creating a personal task."""

    title: str = Field(description="Short task title (e.g., 'Ingliz tili mashqi')")
    days: list[str] = Field(
        description="Weekdays the task repeats on, in English or Uzbek (e.g., ['Monday', 'Juma'])",
    )
    description: str | None = Field(default=None, description="Optional task description")


class ChatTurn(BaseModel):
    """One message of the creation conversation as exchanged with the client."""

    role: ChatRole
    content: str


class CreationReply(BaseModel):
    """Result of one user turn."""

    reply: str
    state: CreationState
    task: Task | None = None


creation_agent: Agent[CreationDeps, str] = Agent(None, deps_type=CreationDeps, output_type=str, retries=0)


@creation_agent.instructions
def _instructions(ctx: RunContext[CreationDeps]) -> str:
    language = "English" if ctx.deps.locale == "en" else "Uzbek"
    return f"""You help {ctx.deps.user_name} create a personal task in the MaqsadM app.

Ask short questions, in {language}, until you know:
1. The task title.
2. The weekdays it repeats on (at least one).
Then call create_personal_task exactly once. Do not invent details the user did not give.
Today is {ctx.deps.today.isoformat()}."""


@creation_agent.tool(retries=1)
async def create_personal_task(ctx: RunContext[CreationDeps], params: CreatePersonalTask) -> str:
    """Save the personal task once title and weekdays are known.

    Args:
        ctx: Agent runtime context with dependencies
        params: Task creation parameters

    Returns:
        Success or error message for the model
    """
    session = ctx.deps.session
    with logfire.span("tool_create_personal_task", title=params.title):
        session.transition(CreationState.TOOL_INVOCATION_PENDING)
        try:
            schedule = RecurringSchedule(days=params.days)
            task = await task_service.create_personal_task(
                owner_id=ctx.deps.user_id,
                title=params.title,
                schedule=schedule,
                description=params.description or DESCRIPTION_TEMPLATE.format(title=params.title),
            )
        except (InvalidScheduleError, ValidationError) as e:
            logger.warning("Task creation needs a valid schedule", extra={"error": str(e)})
            session.transition(CreationState.GATHERING)
            return f"Error: {e!s}. Ask the user for at least one valid weekday."
        except (UnresolvedScopeReference, db_client.DatabaseError) as e:
            logger.error("Task creation failed", extra={"user_id": ctx.deps.user_id, "error": str(e)})
            session.error = str(e)
            session.transition(CreationState.FAILED)
            return "Error: The task could not be saved."

        session.task = task
        session.transition(CreationState.CONFIRMED)
        return f"Created task '{task.title}' (id {task.id})."


def to_model_messages(history: list[ChatTurn]) -> list[ModelMessage]:
    """Rebuild pydantic-ai message history from client-held chat turns."""
    messages: list[ModelMessage] = []
    for turn in history:
        if turn.role == "user":
            messages.append(ModelRequest(parts=[UserPromptPart(content=turn.content)]))
        else:
            messages.append(ModelResponse(parts=[TextPart(content=turn.content)]))
    return messages


async def send_message(*, user_message: str, deps: Deps, history: list[ChatTurn] | None = None) -> CreationReply:
    """Run one user turn of the task-creation conversation.

    Args:
        user_message: The user's latest message
        deps: Acting user and locale
        history: Earlier turns of this conversation, oldest first

    Returns:
        The reply to show and the state the turn ended in
    """
    session = CreationSession()
    run_deps = CreationDeps(
        user_id=deps.user_id,
        user_name=deps.user_name,
        current_time=deps.current_time,
        locale=deps.locale,
        session=session,
    )

    try:
        result = await creation_agent.run(
            user_message,
            deps=run_deps,
            message_history=to_model_messages(history or []),
            model=agent_instance.get_model(),
        )
    except Exception as e:
        error_category, message = classify_agent_error(e, locale=deps.locale)
        logger.error(
            "Task creation chat failed",
            extra={"user_id": deps.user_id, "error": str(e), "error_category": error_category.value},
        )
        # A terminal state reached before the error still decides the reply
        if session.state in (CreationState.CONFIRMED, CreationState.FAILED):
            return _terminal_reply(session, deps.locale)
        session.transition(CreationState.FAILED)
        return CreationReply(reply=message, state=session.state)

    if session.state in (CreationState.CONFIRMED, CreationState.FAILED):
        return _terminal_reply(session, deps.locale)
    return CreationReply(reply=agent_instance.sanitize_llm_output(result.output), state=session.state)


def _terminal_reply(session: CreationSession, locale: str) -> CreationReply:
    if session.state == CreationState.CONFIRMED and session.task is not None:
        template = CONFIRMED_TEMPLATES.get(locale, CONFIRMED_TEMPLATES["uz"])
        return CreationReply(reply=template.format(title=session.task.title), state=session.state, task=session.task)
    return CreationReply(reply=FAILED_MESSAGES.get(locale, FAILED_MESSAGES["uz"]), state=session.state)
