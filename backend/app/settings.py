from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

logger = logging.getLogger(__name__)

DEFAULT_ORIGIN = "http://localhost:5173"


class Settings(BaseSettings):
    origin: str = Field(default="", alias="ORIGIN")
    target_tokens: int = Field(default=10, ge=1, le=10, alias="TARGET_TOKENS")
    trump_selection: Literal["random", "strongest"] = Field(default="random", alias="TRUMP_SELECTION")
    shuffle_seed: Optional[int] = Field(default=None, alias="SHUFFLE_SEED")
    report_illegal_actions: bool = Field(default=True, alias="REPORT_ILLEGAL_ACTIONS")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    def allowed_origins(self) -> list[str]:
        """
        Splits ORIGIN on commas and drops blanks.
        Example: "https://omi.example, https://www.omi.example"
        """
        extra = [x.strip() for x in self.origin.split(",") if x.strip()]
        return [DEFAULT_ORIGIN] + [x for x in extra if x != DEFAULT_ORIGIN]

    def log_status(self) -> None:
        env_name = os.getenv("ENV", "unknown")
        logger.info(
            "Table settings: target_tokens=%s, trump_selection=%s, seeded=%s, report_illegal=%s, env=%s",
            self.target_tokens,
            self.trump_selection,
            self.shuffle_seed is not None,
            self.report_illegal_actions,
            env_name,
        )


@lru_cache()
def get_settings() -> Settings:
    settings = Settings()
    settings.log_status()
    return settings
