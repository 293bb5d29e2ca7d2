"""
Service boundary helpers.

Public service operations return result values. Anything unexpected that
escapes an operation is logged with its stack trace, the transaction is
rolled back and a generic internal-error result is returned instead.
"""
import logging
from functools import wraps
from typing import Awaitable, Callable, Type, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import AuthErrorType
from ..schemas.responses import ServiceResult

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=ServiceResult)


class BaseService:
    """Holds the unit-of-work session shared by the repositories of one request."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _rollback_quietly(self) -> None:
        try:
            await self.session.rollback()
        except Exception as e:
            logger.warning(f"Error during rollback: {e}")


def service_operation(result_cls: Type[R]) -> Callable[[Callable[..., Awaitable[R]]], Callable[..., Awaitable[R]]]:
    """Convert unexpected exceptions into ``result_cls.fail(INTERNAL_ERROR)``."""

    def decorator(func: Callable[..., Awaitable[R]]) -> Callable[..., Awaitable[R]]:
        @wraps(func)
        async def wrapper(self: BaseService, *args, **kwargs) -> R:
            try:
                return await func(self, *args, **kwargs)
            except Exception:
                logger.exception(f"Unexpected error in {type(self).__name__}.{func.__name__}")
                await self._rollback_quietly()
                return result_cls.fail(AuthErrorType.INTERNAL_ERROR)

        return wrapper

    return decorator
