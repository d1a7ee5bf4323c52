"""
Best-effort undo of partially applied multi-document writes.

The trip aggregate spans four collections without a transaction. When a later
write of an operation fails, the documents created by the earlier writes are
deleted again before the original error is re-raised. A failing compensation
is logged and otherwise ignored, whatever it raised: the caller must see the
original error, and the leftover document is an orphan nothing references.
"""

from typing import Awaitable

from be_my_guide.managers.logging_manager import get_logger

logger = get_logger(prefix="[Compensation]")


async def compensate(action: Awaitable, description: str) -> None:
    """Await `action`, logging instead of raising if it fails."""
    logger.warning(f"Compensating: {description}")
    try:
        await action
    except Exception as e:
        logger.error(f"Compensation failed ({description}): {e}", exc_info=True)
