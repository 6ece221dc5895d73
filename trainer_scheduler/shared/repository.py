"""Guards applied to every storage call made by repositories."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from trainer_scheduler.core.config import get_settings
from trainer_scheduler.shared.exceptions import RepositoryUnavailableException

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


class GuardedRepository:
    """Base for repositories bound to one async DB session."""

    def __init__(self, session: AsyncSession, timeout_seconds: float | None = None) -> None:
        self.session = session
        self.timeout_seconds = timeout_seconds or get_settings().repository_timeout_seconds


def repository_call(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Bound the call by the repository timeout and map connection failures."""

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        repository = args[0]
        timeout_seconds = getattr(repository, "timeout_seconds", None)
        try:
            return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout_seconds)
        except TimeoutError as exc:
            logger.warning("Repository call %s timed out after %ss", func.__qualname__, timeout_seconds)
            raise RepositoryUnavailableException("Storage did not respond in time") from exc
        except (OperationalError, InterfaceError) as exc:
            logger.warning("Repository call %s failed: %s", func.__qualname__, exc)
            raise RepositoryUnavailableException("Storage is unavailable") from exc
        except DBAPIError as exc:
            if exc.connection_invalidated:
                logger.warning("Repository call %s lost its connection", func.__qualname__)
                raise RepositoryUnavailableException("Storage connection was lost") from exc
            raise

    return wrapper
