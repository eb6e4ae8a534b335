"""Server configuration.

Every value can be overridden with an environment variable named
``LIVEQUIZ_<NAME>``; the CLI in ``app.py`` overrides host, port, passphrase
and log level on top of that.
"""
import os


def _env(name: str, default: str) -> str:
    return os.environ.get(f"LIVEQUIZ_{name}", default)


# Network
HOST: str = _env("HOST", "0.0.0.0")
PORT: int = int(_env("PORT", "3001"))

# Shared admin passphrase; empty disables the check
ADMIN_PASSPHRASE: str = _env("ADMIN_PASSPHRASE", "")

# Wrong passphrases tolerated on one socket before it is closed
ADMIN_PASSWORD_ATTEMPTS: int = int(_env("ADMIN_PASSWORD_ATTEMPTS", "3"))

# Seconds after the announced deadline during which answers are still accepted
ANSWER_GRACE_SECONDS: float = float(_env("ANSWER_GRACE_SECONDS", "1.0"))

# Question time limits (seconds)
MIN_TIME_LIMIT: int = int(_env("MIN_TIME_LIMIT", "10"))
MAX_TIME_LIMIT: int = int(_env("MAX_TIME_LIMIT", "120"))
DEFAULT_TIME_LIMIT: int = int(_env("DEFAULT_TIME_LIMIT", "30"))

OPTIONS_PER_QUESTION = 4

# Logging
LOG_DIR: str = _env("LOG_DIR", "logs")
LOG_LEVEL: str = _env("LOG_LEVEL", "DEBUG")

# Question generator collaborator
GENERATOR_API_KEY: str = _env("GENERATOR_API_KEY", "")
GENERATOR_MODEL: str = _env("GENERATOR_MODEL", "gemini-1.5-flash")
GENERATOR_URL: str = _env(
    "GENERATOR_URL",
    "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
)
GENERATOR_TIMEOUT: float = float(_env("GENERATOR_TIMEOUT", "30"))
GENERATED_QUESTION_COUNT: int = int(_env("GENERATED_QUESTION_COUNT", "5"))
