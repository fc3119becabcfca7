"""Token refresh wrapper for vendor API calls.

On an auth failure the access token is refreshed once and the call is
replayed once. There are no further attempts.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from chatkit.application.errors import ChatApiError
from chatkit.observability import token_refreshes

logger = logging.getLogger(__name__)

T = TypeVar("T")

RefreshCallback = Callable[[], Awaitable[str]]
ShouldRefresh = Callable[[int, Any], bool]


def _unauthorized(status: int, body: Any) -> bool:
    return status == 401


class TokenRefresher:
    """Holds the current access token and retries calls after refreshing it.

    Args:
        token: Initial access token
        refresh_token: Async callback returning a fresh token; without it auth errors propagate directly
        should_refresh_token: Decides from ``(status, body)`` whether an error warrants a refresh
    """

    def __init__(
        self,
        token: str = "",
        refresh_token: Optional[RefreshCallback] = None,
        should_refresh_token: ShouldRefresh = _unauthorized,
    ) -> None:
        self.token = token
        self._refresh_token = refresh_token
        self._should_refresh_token = should_refresh_token

    @property
    def can_refresh(self) -> bool:
        return self._refresh_token is not None

    async def execute(self, call: Callable[[], Awaitable[T]]) -> T:
        """Await ``call``, refreshing the token and replaying it once on an auth failure.

        ``call`` must read ``self.token`` each time it runs so the replay uses the new token.

        Raises:
            ChatApiError: The original error when the refresh fails, or the retry's error when the replay fails
        """
        try:
            return await call()
        except ChatApiError as e:
            if self._refresh_token is None or not self._should_refresh_token(e.status, e.body):
                raise
            original_error = e

        logger.info(f"Access token rejected (status {original_error.status}), refreshing")
        try:
            self.token = await self._refresh_token()
        except Exception as refresh_error:
            token_refreshes.add(1, {"outcome": "failed"})
            logger.error(f"Token refresh failed: {refresh_error}")
            raise original_error from refresh_error
        token_refreshes.add(1, {"outcome": "refreshed"})

        try:
            return await call()
        except ChatApiError as retry_error:
            if self._should_refresh_token(retry_error.status, retry_error.body):
                logger.error(f"Request still unauthorized after token refresh (status {retry_error.status})")
            raise
