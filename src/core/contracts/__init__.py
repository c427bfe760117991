"""
Contract Validation Module

Модуль для валидации JSON контрактов провода n3xB.
"""

from .validators import (
    ContractValidator,
    EventValidator,
    MakerOrderContentValidator,
    SchemaLoader,
    validate_event,
    validate_maker_order_content,
)

__all__ = [
    # Classes
    "SchemaLoader",
    "ContractValidator",
    "MakerOrderContentValidator",
    "EventValidator",
    # Functions
    "validate_maker_order_content",
    "validate_event",
]
