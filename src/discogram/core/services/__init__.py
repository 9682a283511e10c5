"""
Service layer for relay logic.

This package contains services that implement routing, command handling and
delivery, using clients for external communication.
"""

from .allowlist import ChannelAllowList
from .commands import CommandInterpreter
from .dispatcher import Dispatcher
from .names import NameResolver
from .relay import RelayService
from .routing import RoutingEngine

__all__ = ["ChannelAllowList", "CommandInterpreter", "Dispatcher", "NameResolver", "RelayService", "RoutingEngine"]
