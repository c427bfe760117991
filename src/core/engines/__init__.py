"""
Engine Payload Registry.

Trade engines register a name and an EngineSpecifics subclass; the wire format
is decoded back into the concrete type by tag lookup.
"""

from .registry import EngineRegistry, default_registry, register_engine

__all__ = [
    "EngineRegistry",
    "default_registry",
    "register_engine",
]
