"""Pairing code generation with collision check against pending codes."""

import logging
from typing import Callable, Optional

from chaosops.config import settings
from chaosops.services.errors import CodeSpaceExhaustedError
from chaosops.utils.security import generate_pairing_code

logger = logging.getLogger(__name__)


def generate_unique_code(
    is_taken: Callable[[str], bool],
    length: Optional[int] = None,
    max_attempts: Optional[int] = None,
) -> str:
    """Return a code for which ``is_taken`` is false.

    The caller persists the code; nothing is written here.
    """
    length = length or settings.pairing_code_length
    max_attempts = max_attempts or settings.pairing_code_max_attempts

    for attempt in range(1, max_attempts + 1):
        code = generate_pairing_code(length)
        if not is_taken(code):
            return code
        logger.debug("Pairing code collision on attempt %d", attempt)

    logger.error("Failed to generate unique pairing code after %d attempts", max_attempts)
    raise CodeSpaceExhaustedError("Failed to generate unique pairing code")
