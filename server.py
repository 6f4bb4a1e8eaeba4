import math
from typing import List, Optional, Sequence

from exceptions import EmptyServerPool, InvalidCapability

DEFAULT_CAPABILITY = 1


class Server:
    """Worker server holding a capability weight and its accumulated load."""

    def __init__(self, server_id: int, capability: float = DEFAULT_CAPABILITY):
        if not _is_positive_number(capability):
            raise InvalidCapability(server_id, capability)
        self.id = server_id
        self.capability = capability
        self.load = 0.0

    def add_load(self, amount: float):
        """Add task load. No upper bound, overload is representable."""
        self.load += amount

    def reset(self):
        self.load = 0.0

    def get_load(self) -> float:
        return self.load

    def get_id(self) -> int:
        return self.id

    def get_capability(self) -> float:
        return self.capability

    def copy(self) -> "Server":
        clone = Server(self.id, self.capability)
        clone.load = self.load
        return clone

    def __repr__(self):
        return f"Server(id={self.id}, capability={self.capability}, load={self.load:.2f})"


def _is_positive_number(value) -> bool:
    if isinstance(value, bool):
        return False
    try:
        return math.isfinite(value) and value > 0
    except TypeError:
        return False


def initialize_servers(num_servers: Optional[int] = None,
                       capabilities: Optional[Sequence[float]] = None) -> List[Server]:
    """Build a pool with ids 0..n-1.

    Without capabilities every server gets the default capability of 1
    (uncapacitated mode). When both arguments are given they must agree.
    """
    if capabilities is None:
        if not num_servers or num_servers <= 0:
            raise EmptyServerPool()
        capabilities = [DEFAULT_CAPABILITY] * num_servers
    elif num_servers is not None and num_servers != len(capabilities):
        raise ValueError(f"Expected {num_servers} capabilities, got {len(capabilities)}")

    if len(capabilities) == 0:
        raise EmptyServerPool()
    return [Server(i, capability) for i, capability in enumerate(capabilities)]


def copy_servers(servers: Sequence[Server]) -> List[Server]:
    """Independent copies, so a policy never shares state with the caller."""
    return [server.copy() for server in servers]
