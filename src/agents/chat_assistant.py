"""Productivity chatbot with access to the user's own tasks."""

import datetime as dt
import logging

import logfire
from pydantic import BaseModel, Field
from pydantic_ai import Agent, RunContext
from pydantic_ai.messages import ModelMessage, ModelRequest, ModelResponse, TextPart, UserPromptPart

from src.agents import agent_instance
from src.agents.base import Deps
from src.core import db_client
from src.core.config import settings
from src.core.errors import AIServiceError, classify_agent_error
from src.core.schedule_evaluator import describe_schedule
from src.domain.chat import ChatMessage
from src.services import chat_history_service, task_aggregator, user_service


logger = logging.getLogger(__name__)


class ChatReply(BaseModel):
    """Structured assistant answer."""

    reply: str = Field(description="Answer to the user, in Markdown")
    follow_up_questions: list[str] = Field(
        default_factory=list,
        description="Up to three short questions the user might ask next",
    )


class ListMyTasks(BaseModel):
    """Parameters for listing the user's tasks."""

    date: dt.date | None = Field(default=None, description="Day to list tasks for (YYYY-MM-DD); defaults to today")


chat_agent: Agent[Deps, ChatReply] = Agent(None, deps_type=Deps, output_type=ChatReply, retries=0)


@chat_agent.instructions
def _instructions(ctx: RunContext[Deps]) -> str:
    return f"""You are a helpful productivity assistant for the "MaqsadM" app.
You help {ctx.deps.user_name} set goals, plan tasks and stay motivated.

GUIDELINES:
1. Be concise and friendly. Use Markdown formatting.
2. Reply in the language the user writes in.
3. When the user asks about their tasks, call list_my_tasks instead of guessing.
4. Suggest at most three follow-up questions.

Today's date: {ctx.deps.today.isoformat()}"""


@chat_agent.tool
async def list_my_tasks(ctx: RunContext[Deps], params: ListMyTasks) -> str:
    """List the user's tasks due on a day, with completion state.

    Args:
        ctx: Agent runtime context with dependencies
        params: Day to list

    Returns:
        Task list or error message
    """
    day = params.date or ctx.deps.today
    try:
        with logfire.span("tool_list_my_tasks", date=day.isoformat()):
            user = await user_service.get_user(user_id=ctx.deps.user_id)
            entries = await task_aggregator.tasks_for_user(user, day)

            if not entries:
                return f"No tasks due on {day.isoformat()}."

            lines = [f"Tasks for {day.isoformat()}:"]
            for entry in entries:
                status = "done" if entry.is_completed else "open"
                where = f"group '{entry.group_name}'" if entry.group_name else "personal"
                schedule = describe_schedule(entry.task.schedule, locale=ctx.deps.locale)
                lines.append(f"- [{status}] {entry.task.title} ({where}, {schedule}, {entry.task.coins} coins)")
            return "\n".join(lines)

    except db_client.DatabaseError as e:
        logger.error("Unexpected error in list_my_tasks", extra={"error": str(e)})
        return "Error: Unable to load tasks. Please try again."


def _to_model_messages(history: list[ChatMessage]) -> list[ModelMessage]:
    messages: list[ModelMessage] = []
    for message in history:
        if message.role == "user":
            messages.append(ModelRequest(parts=[UserPromptPart(content=message.content)]))
        else:
            messages.append(ModelResponse(parts=[TextPart(content=message.content)]))
    return messages


async def chat(*, user_message: str, deps: Deps) -> ChatReply:
    """Answer a user message using the stored conversation as context.

    Both the message and the reply are appended to the chat history; a failed run
    stores nothing.

    Raises:
        AIServiceError: If the model call fails
    """
    history = await chat_history_service.get_recent_messages(user_id=deps.user_id)

    try:
        logger.info("chat_assistant_run", extra={"user_id": deps.user_id, "history": len(history)})
        result = await chat_agent.run(
            user_message,
            deps=deps,
            message_history=_to_model_messages(history),
            model=agent_instance.get_model(),
            model_settings={"temperature": settings.ai_temperature},
        )
    except Exception as e:
        error_category, message = classify_agent_error(e, locale=deps.locale)
        logger.error(
            "Chat assistant failed",
            extra={"user_id": deps.user_id, "error": str(e), "error_category": error_category.value},
        )
        raise AIServiceError(error_category, message) from e

    reply = ChatReply(
        reply=agent_instance.sanitize_llm_output(result.output.reply),
        follow_up_questions=result.output.follow_up_questions[:3],
    )

    await chat_history_service.add_message(user_id=deps.user_id, role="user", content=user_message)
    await chat_history_service.add_message(user_id=deps.user_id, role="model", content=reply.reply)
    return reply
