"""Manager — facade owning identity and the publish/subscribe relay pools."""

from .config import DEFAULT_POW_DIFFICULTY, DEFAULT_RELAY_URL, ManagerConfig
from .manager import Manager

__all__ = [
    "Manager",
    "ManagerConfig",
    "DEFAULT_RELAY_URL",
    "DEFAULT_POW_DIFFICULTY",
]
