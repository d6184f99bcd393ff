# centralized configuration loader
# runs load_dotenv() to read .env
# modules read these as config.NAME at call time so tests can monkeypatch them

import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes", "y"}


# Provider
DEFAULT_PROVIDER = os.getenv("DEFAULT_PROVIDER", "ollama")
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://127.0.0.1:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "qwen2.5:3b-instruct")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# Generation
TEMPERATURE = float(os.getenv("TEMPERATURE", "0.7"))
MAX_TOKENS = int(os.getenv("MAX_TOKENS", "1024"))
CTX_CHARS = int(os.getenv("CTX_CHARS", "16000"))  # truncation budget, in characters
DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "English")
USE_CURSOR_ICON = _flag("USE_CURSOR_ICON", "true")

# Web search
WEB_SEARCH_MODE = os.getenv("WEB_SEARCH_MODE", "off")  # off | auto | always
SEARCH_URL = os.getenv("SEARCH_URL", "https://api.duckduckgo.com/")
SEARCH_MAX_RESULTS = int(os.getenv("SEARCH_MAX_RESULTS", "5"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
