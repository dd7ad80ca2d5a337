# settings.py
# Runtime configuration read from GAME2048_* environment variables.

from typing import Mapping, Optional
import logging
import os

from pydantic import BaseModel, Field

ENV_PREFIX = "GAME2048_"
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

class GameConfig(BaseModel):
    """Settings shared by the CLI driver and the HTTP API."""
    store_path: str = Field(
        default="~/.2048py.json",
        description="JSON file holding the best score and the mute flag."
    )
    spawn_delay: float = Field(
        default=0.1,
        ge=0,
        description="Seconds between a move and its new tile when spawning is deferred."
    )
    rate_limit: str = Field(
        default="100/minute",
        description="Per-client request limit for the HTTP API, in slowapi notation."
    )
    log_level: str = Field(default="INFO", description="Root logging level.")
    seed: Optional[int] = Field(
        default=None,
        description="Seed for the tile spawner; unseeded when absent."
    )

def load_config(environ: Optional[Mapping[str, str]] = None) -> GameConfig:
    """
    Builds a GameConfig from environment variables such as GAME2048_SEED.
    Raises:
        pydantic.ValidationError: If a variable holds an invalid value.
    """
    environ = os.environ if environ is None else environ
    values = {}
    for name in GameConfig.model_fields:
        key = ENV_PREFIX + name.upper()
        if key in environ:
            values[name] = environ[key]
    return GameConfig(**values)

def configure_logging(config: GameConfig) -> None:
    logging.basicConfig(level=config.log_level.upper(), format=LOG_FORMAT)
