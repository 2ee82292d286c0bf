"""Domain exceptions raised by the floor services.

Routers translate these into HTTP responses; services never raise
``HTTPException`` themselves.
"""
from __future__ import annotations


class FloorError(Exception):
    """Base class for every error a floor service raises on purpose."""


class NotFound(FloorError):
    pass


class SessionNotFound(NotFound):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class EntryNotFound(NotFound):
    def __init__(self, entry_id: str):
        super().__init__(f"Ledger entry {entry_id} not found")
        self.entry_id = entry_id


class InvalidTransition(FloorError):
    """An engagement tag change that the state machine rejects."""


class SessionStateError(FloorError):
    """The session is not in a state that allows the operation."""


class BillSettingsMissing(FloorError):
    def __init__(self, venue_id: int | None):
        super().__init__(f"Bill settings are not configured for venue {venue_id}")
        self.venue_id = venue_id


class InvalidInput(FloorError):
    pass
