"""
Session module: Identity registry and session lifecycle.

Provides:
- SessionRegistry: cluster id -> local handles, invalidate/renew/expire fan-out
- SessionIdGenerator: cluster ids and extended (node-qualified) ids
- SessionHandle: non-owning reference to an in-process session
- ContextSetResolver: registered local contexts for fan-out
- LocalSessionContext / Session: in-process reference context
- Housekeeper: periodic reclamation and remote expiry checks
- SessionStore: transcoder + key-value client persistence
"""

from kvsession.session.state import SessionState, EncodedRecord
from kvsession.session.ids import SessionIdGenerator
from kvsession.session.handle import SessionHandle
from kvsession.session.contexts import SessionContext, ContextSetResolver
from kvsession.session.registry import SessionRegistry
from kvsession.session.context import Session, LocalSessionContext
from kvsession.session.store import SessionStore
from kvsession.session.housekeeper import Housekeeper, SweepReport

__all__ = [
    "SessionState",
    "EncodedRecord",
    "SessionIdGenerator",
    "SessionHandle",
    "SessionContext",
    "ContextSetResolver",
    "SessionRegistry",
    "Session",
    "LocalSessionContext",
    "SessionStore",
    "Housekeeper",
    "SweepReport",
]
