"""
Session Handle: Non-Owning Reference to an In-Process Session

A handle never keeps its session alive. It resolves only while:
- the referent has not been garbage-collected,
- the handle has not been released by its context,
- the owning context still reports the session as live.

Handles compare by identity, so two handles to the same session object
are still distinct registry members.
"""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from kvsession.session.contexts import SessionContext


class SessionHandle:
    """Weak reference to one context's session object."""

    __slots__ = ("_ref", "_context", "_released", "__weakref__")

    def __init__(self, session: Any, context: SessionContext) -> None:
        self._ref = weakref.ref(session)
        self._context = context
        self._released = False

    @property
    def context(self) -> SessionContext:
        return self._context

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Drop the reference; the handle never resolves again."""
        self._released = True
        self._ref = None

    def resolve(self) -> Optional[Any]:
        if self._released or self._ref is None:
            return None
        session = self._ref()
        if session is None:
            return None
        if not self._context.is_live(session):
            return None
        return session

    def __repr__(self) -> str:
        state = "released" if self._released else ("live" if self.resolve() is not None else "gone")
        return f"SessionHandle(context={self._context.name!r}, {state})"
