"""
Session Identifiers: Cluster Ids and Extended Ids

Cluster id:
    worker_name + base36(r0) + base36(r1)
    r0, r1 are 64-bit draws from the OS CSPRNG (secrets). The cluster id
    is node-independent and is the key under which state is stored.

Extended id:
    cluster_id + "." + node
    The node suffix records which node last handled a request for the
    session. Stripping everything from the last "." recovers the
    cluster id.
"""

from __future__ import annotations

import secrets
from typing import Callable, Optional

from kvsession.core import constants as C
from kvsession.core.config import IdConfig

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    """Render a non-negative integer in base 36 (lowercase)."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


class SessionIdGenerator:
    """
    Produces fresh cluster ids and converts between id forms.

    Usage:
        ids = SessionIdGenerator(IdConfig(worker_name="w1", node_name="node0"))
        cluster_id = ids.new_id(in_use=registry.is_in_use)
        ids.extended_id(cluster_id)  # "w1...node0"
    """

    __slots__ = ("_worker_name", "_node_name")

    def __init__(self, config: Optional[IdConfig] = None) -> None:
        config = config or IdConfig()
        self._worker_name = config.worker_name
        self._node_name = config.node_name

    @property
    def node_name(self) -> str:
        return self._node_name

    def generate(self, seed: Optional[int] = None) -> str:
        """
        Draw one candidate cluster id.

        seed is mixed into the first random word (the caller usually
        passes a request-derived hash); it never replaces randomness.
        """
        r0 = secrets.randbits(C.ID_RANDOM_BITS)
        r1 = secrets.randbits(C.ID_RANDOM_BITS)
        if seed is not None:
            r0 ^= seed & ((1 << C.ID_RANDOM_BITS) - 1)
        return f"{self._worker_name}{to_base36(r0)}{to_base36(r1)}"

    def new_id(
        self,
        in_use: Callable[[str], bool],
        seed: Optional[int] = None,
    ) -> str:
        """
        Draw ids until one is not in use.

        Raises:
            RuntimeError: MAX_ID_ATTEMPTS consecutive collisions
        """
        for _ in range(C.MAX_ID_ATTEMPTS):
            candidate = self.generate(seed)
            if not in_use(candidate):
                return candidate
        raise RuntimeError(
            f"Could not draw an unused session id in {C.MAX_ID_ATTEMPTS} attempts"
        )

    def extended_id(self, cluster_id: str, node: Optional[str] = None) -> str:
        node = node if node is not None else self._node_name
        if not node:
            return cluster_id
        return f"{cluster_id}{C.EXTENDED_ID_SEPARATOR}{node}"

    @staticmethod
    def cluster_id(extended_id: str) -> str:
        cluster, sep, _ = extended_id.rpartition(C.EXTENDED_ID_SEPARATOR)
        return cluster if sep else extended_id

    @staticmethod
    def node_id(extended_id: str) -> Optional[str]:
        _, sep, node = extended_id.rpartition(C.EXTENDED_ID_SEPARATOR)
        return node if sep else None
