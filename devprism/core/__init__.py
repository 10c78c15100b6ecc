"""Core services package."""

from devprism.core.allocator import PortAllocator
from devprism.core.injector import run_with_env
from devprism.core.lifecycle import SessionLifecycle
from devprism.core.registry import SessionRegistry

__all__ = [
    "PortAllocator",
    "SessionLifecycle",
    "SessionRegistry",
    "run_with_env",
]
