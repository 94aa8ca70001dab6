"""Port for persisting installed providers and their order."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sourcerr.domain.entities.providers import Provider


@runtime_checkable
class ProviderStorePort(Protocol):
    async def load(self) -> tuple[dict[str, Provider], list[str]]:
        """Return (providers by id, persisted id order)."""
        ...

    async def save(self, providers: dict[str, Provider], order: list[str]) -> None: ...
