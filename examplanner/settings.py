from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    # EXAMPLANNER_DEFAULT_TRIES=200, EXAMPLANNER_WORKERS=4, ...
    model_config = SettingsConfigDict(env_prefix="EXAMPLANNER_", env_file=".env", extra="ignore")

    default_tries: int = Field(default=100, ge=1)
    workers: int = Field(default=1, ge=1)
    log_level: str = "INFO"

    # local search budget = iterations_per_course * number of assigned courses
    local_search_iterations_per_course: int = Field(default=25, ge=0)
    # relative noise applied to conflict degree when ordering courses
    ordering_jitter: float = Field(default=0.35, ge=0.0)

    default_timezone: str = "UTC"
    default_day_start: str = "09:00"
    default_day_end: str = "17:00"


@lru_cache
def get_settings() -> EngineSettings:
    return EngineSettings()
