"""Token provider implementations."""

from collections.abc import Awaitable, Callable

from attrs import define


@define(frozen=True, slots=True)
class StaticTokenProvider:
    """Hands out a fixed token; an empty string counts as no token."""

    token: str | None = None

    async def get_access_token(self) -> str | None:
        return self.token or None


@define(frozen=True, slots=True)
class CallableTokenProvider:
    """Adapts an async callable owned by the caller's OAuth layer."""

    fetch: Callable[[], Awaitable[str | None]]

    async def get_access_token(self) -> str | None:
        return await self.fetch() or None
