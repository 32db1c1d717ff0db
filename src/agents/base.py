"""Base utilities and dependencies for Pydantic AI agents."""

from dataclasses import dataclass
from datetime import date, datetime


@dataclass
class Deps:
    """Dependencies injected into agent RunContext."""

    user_id: str
    user_name: str
    current_time: datetime
    locale: str = "uz"

    @property
    def today(self) -> date:
        return self.current_time.date()
