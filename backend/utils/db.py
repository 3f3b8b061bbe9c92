import logging

from sqlalchemy.exc import IntegrityError, DBAPIError

from core.errors import AppError

logger = logging.getLogger(__name__)


async def safe_commit(session, conflict_message: str = "Resource already exists", server_error_message: str = "Internal server error"):
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        logger.warning(f"Integrity error on commit: {e.orig}")
        raise AppError.conflict(conflict_message) from e
    except DBAPIError as e:
        await session.rollback()
        logger.error(f"Database error on commit: {e}")
        raise AppError.internal(server_error_message) from e
