import logging
import os

LOG_LEVEL = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(),  # Output to console
    ],
)


def get_logger(name: str):
    return logging.getLogger(name)


def mask_secret(value: str | None, visible: int = 10) -> str:
    """Return the first `visible` characters of a secret followed by '...'."""
    if not value:
        return ""
    return f"{value[:visible]}..."
