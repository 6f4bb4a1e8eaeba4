"""Errors raised by the load balancing simulation.

All of them derive from ValueError so callers that already guard against bad
input with ``except ValueError`` keep working.
"""


class LoadBalancerError(ValueError):
    """Base class for simulation errors."""


class EmptyServerPool(LoadBalancerError):
    """Raised when a policy or driver is given no servers to work with."""

    def __init__(self, message: str = "Server pool is empty"):
        super().__init__(message)


class InvalidTaskWeight(LoadBalancerError):
    """Raised when a task load is not a positive finite number."""

    def __init__(self, task_index: int, task_load):
        self.task_index = task_index
        self.task_load = task_load
        super().__init__(f"Task {task_index} has invalid load {task_load!r}; loads must be positive")


class InvalidCapability(LoadBalancerError):
    """Raised when a server capability is not strictly positive."""

    def __init__(self, server_id: int, capability):
        self.server_id = server_id
        self.capability = capability
        super().__init__(f"Server {server_id} has invalid capability {capability!r}")


class ZeroDurationThroughput(LoadBalancerError):
    """Raised when throughput is requested for a run that took no time."""

    def __init__(self, elapsed_time):
        self.elapsed_time = elapsed_time
        super().__init__(f"Cannot compute throughput over a duration of {elapsed_time!r}")
