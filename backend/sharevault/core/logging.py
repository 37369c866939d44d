import logging

from sharevault.core.config import settings

TOKEN_PREFIX_LENGTH = 8

_configured = False


def setup_logging(level: str = None) -> None:
    """Configure root logging once per process."""
    global _configured
    if _configured:
        return
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    _configured = True


def redact_token(token: str) -> str:
    """Truncate a token to a short prefix so it can be logged."""
    if not token or len(token) < TOKEN_PREFIX_LENGTH:
        return "<redacted>"
    return f"{token[:TOKEN_PREFIX_LENGTH]}..."
