"""Party directory contract and an in-memory implementation."""
from __future__ import annotations
from typing import Protocol
from .models import Party


class PartyDirectory(Protocol):
    async def resolve(self, party_id: str) -> Party | None:
        """Return the party, or None when it does not exist.

        Lookup failures raise DirectoryError rather than returning None.
        """
        ...


class InMemoryPartyDirectory:
    """Dict-backed directory used in OFFLINE_MODE and tests."""

    def __init__(self, parties: list[Party] | None = None):
        self._parties: dict[str, Party] = {}
        for party in parties or []:
            self.add(party)

    def add(self, party: Party) -> None:
        self._parties[party.id] = party

    async def resolve(self, party_id: str) -> Party | None:
        party = self._parties.get(party_id)
        return party.model_copy() if party else None
