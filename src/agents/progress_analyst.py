"""Progress analyst: a short motivational read on the user's recent completions."""

import logging

from pydantic_ai import Agent, RunContext

from src.agents import agent_instance
from src.agents.base import Deps
from src.core import db_client
from src.core.config import constants
from src.core.errors import AIServiceError, classify_agent_error
from src.domain.completion import CompletionRecord, Currency
from src.domain.user import User
from src.services import completion_service, task_service


logger = logging.getLogger(__name__)

WELCOME_MESSAGES = {
    "uz": "Maqsadlar sari ilk qadamingizni qo'ying! Bugun birinchi vazifangizni belgilang.",
    "en": "Take your first step towards your goals! Mark your first task today.",
}

_LANGUAGE_NAMES = {"uz": "Uzbek", "en": "English"}

analyst_agent: Agent[Deps, str] = Agent(None, deps_type=Deps, output_type=str, retries=0)


@analyst_agent.instructions
def _instructions(ctx: RunContext[Deps]) -> str:
    language = _LANGUAGE_NAMES.get(ctx.deps.locale, "Uzbek")
    return f"""You are "AI Tahlilchi", a warm and motivating productivity coach in the MaqsadM app.

Analyze the user's goals, habits and recent task history, then reply with ONE short
paragraph (2-4 sentences) in {language}:
- Praise a concrete strength you see in the history.
- Point out one pattern worth improving, kindly.
- End with a single actionable suggestion for today.
Do not use lists or headings. Today is {ctx.deps.today.isoformat()}."""


async def _describe_history(history: list[CompletionRecord]) -> str:
    titles: dict[str, str] = {}
    lines = []
    for record in history:
        if record.task_id not in titles:
            try:
                titles[record.task_id] = (await task_service.get_task(task_id=record.task_id)).title
            except db_client.RecordNotFoundError:
                titles[record.task_id] = "(deleted task)"
        coin = "gold" if record.currency == Currency.GOLD else "silver"
        lines.append(f"- {record.date.isoformat()}: {titles[record.task_id]} (+{record.coins_awarded} {coin})")
    return "\n".join(lines)


async def analyze_progress(*, user: User, deps: Deps) -> str:
    """Return a short analysis of the user's last completions.

    Without any history the fixed welcome message is returned and the model is not
    called.

    Raises:
        AIServiceError: If the model call fails
    """
    history = await completion_service.get_history(user_id=user.id, limit=constants.ANALYSIS_HISTORY_LIMIT)
    if not history:
        return WELCOME_MESSAGES.get(deps.locale, WELCOME_MESSAGES["uz"])

    prompt = (
        f"Goals: {user.goals or '-'}\n"
        f"Habits: {user.habits or '-'}\n"
        f"Occupation: {user.occupation or '-'}\n\n"
        f"Recent completions (newest first):\n{await _describe_history(history)}"
    )

    try:
        logger.info("progress_analyst_run", extra={"user_id": user.id, "history": len(history)})
        result = await analyst_agent.run(prompt, deps=deps, model=agent_instance.get_model())
    except Exception as e:
        error_category, user_message = classify_agent_error(e, locale=deps.locale)
        logger.error(
            "Progress analysis failed",
            extra={"user_id": user.id, "error": str(e), "error_category": error_category.value},
        )
        raise AIServiceError(error_category, user_message) from e

    return agent_instance.sanitize_llm_output(result.output)
