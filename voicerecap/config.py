"""
Configuration loader for the voice recap bot.
Loads environment variables from .env.local (then .env) with sensible defaults.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# -------------------------------------------------------------- #
# Constants
# -------------------------------------------------------------- #

COMMAND_PREFIX = "!"

DEFAULT_RECORDING_STORAGE_PATH = os.path.join("assets", "data", "recordings")
DEFAULT_LOG_DIR = "logs"
DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"
DEFAULT_SUMMARY_MODEL = "gpt-4o"

REQUIRED_ENV_VARS = ("DISCORD_API_TOKEN", "OPENAI_API_KEY")


class ConfigurationError(ValueError):
    """Raised when required configuration is missing or invalid."""


# -------------------------------------------------------------- #
# Bot Config
# -------------------------------------------------------------- #


@dataclass
class BotConfig:
    """Runtime configuration for the bot process."""

    discord_token: str
    openai_api_key: str
    prefix: str = COMMAND_PREFIX
    recording_storage_path: str = DEFAULT_RECORDING_STORAGE_PATH
    log_dir: str = DEFAULT_LOG_DIR
    transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL
    summary_model: str = DEFAULT_SUMMARY_MODEL


def load_env_files() -> None:
    """Load .env.local first, then fall back to any .env (existing variables win)."""
    load_dotenv(dotenv_path=".env.local")
    load_dotenv()


def load_config(environ: dict[str, str] | None = None) -> BotConfig:
    """Build a BotConfig from the environment.

    Args:
        environ: Mapping to read from (defaults to os.environ after loading env files)

    Returns:
        The populated BotConfig

    Raises:
        ConfigurationError: If any required variable is missing or empty
    """
    if environ is None:
        load_env_files()
        environ = dict(os.environ)

    missing = [name for name in REQUIRED_ENV_VARS if not environ.get(name, "").strip()]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    return BotConfig(
        discord_token=environ["DISCORD_API_TOKEN"].strip(),
        openai_api_key=environ["OPENAI_API_KEY"].strip(),
        recording_storage_path=environ.get(
            "RECORDING_STORAGE_PATH", DEFAULT_RECORDING_STORAGE_PATH
        ),
        log_dir=environ.get("LOG_DIR", DEFAULT_LOG_DIR),
        transcription_model=environ.get(
            "OPENAI_TRANSCRIPTION_MODEL", DEFAULT_TRANSCRIPTION_MODEL
        ),
        summary_model=environ.get("OPENAI_SUMMARY_MODEL", DEFAULT_SUMMARY_MODEL),
    )
