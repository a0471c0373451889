"""Shared helpers: environment loading, vision-model reply parsing, logging setup."""

import json
import logging
import re
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# First ```json ... ``` block anywhere in a reply; the language tag is optional
_FENCED_BLOCK = re.compile(r"```(?:[\w-]+)?[ \t]*\n?(?P<body>.*?)```", re.DOTALL)

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def load_dotenv_with_env(env_name: Optional[str] = None) -> str:
    """Load settings from .env.{env_name} into the process environment.

    Values in the file override variables that are already set. A missing file
    is not an error: settings then come from the environment alone.

    Returns:
        The environment name that was used ("local" when none is given)
    """
    name = env_name or "local"
    env_file = Path(f".env.{name}")

    if not env_file.is_file():
        logger.debug(f"No {env_file} file, using process environment only")
        return name

    load_dotenv(env_file, override=True)
    logger.info(f"Environment loaded from {env_file}")
    return name


def strip_markdown_fences(text: str) -> str:
    """Return the body of the first markdown code block, or the text itself when there is none.

    Prose around the block ("Here are the values:") is discarded.
    """
    stripped = text.strip()
    match = _FENCED_BLOCK.search(stripped)
    return match.group("body").strip() if match else stripped


def parse_llm_json_response(text: str, fallback: Any = None) -> Any:
    """Decode a JSON reply from a vision model, tolerating markdown fences.

    Returns fallback when the reply is empty or not valid JSON.
    """

    # Guard: nothing to parse
    if not isinstance(text, str) or not text.strip():
        return fallback

    try:
        return json.loads(strip_markdown_fences(text))
    except json.JSONDecodeError as e:
        logger.debug(f"Reply is not valid JSON: {e}")
        return fallback


def setup_logging(log_dir: Optional[Path] = None, clear_logs: bool = False, console: bool = True) -> logging.Logger:
    """Configure the "vetlabs" logger.

    Args:
        log_dir: Directory for info.log (INFO and above) and error.log (ERROR and
            above); no file logging when None
        clear_logs: Start both files empty
        console: Also log INFO and above to stderr

    Returns:
        The package logger
    """
    package_logger = logging.getLogger("vetlabs")
    package_logger.setLevel(logging.INFO)

    # Repeated setup replaces handlers instead of stacking them
    for old_handler in list(package_logger.handlers):
        package_logger.removeHandler(old_handler)
        old_handler.close()

    formatter = logging.Formatter(_LOG_FORMAT)
    handlers: list[logging.Handler] = []

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        mode = "w" if clear_logs else "a"
        for filename, level in (("info.log", logging.INFO), ("error.log", logging.ERROR)):
            file_handler = logging.FileHandler(log_dir / filename, mode=mode, encoding="utf-8")
            file_handler.setLevel(level)
            handlers.append(file_handler)

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.INFO)
        handlers.append(stream_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    return package_logger
