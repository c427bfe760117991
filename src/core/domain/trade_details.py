"""
TradeDetails — Параметры сделки в целом

parameters — структурированный набор флагов переговоров (TradeParameter),
content — свободные условия (бонды, таймауты и т.п.).
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_serializer


# =============================================================================
# ENUMS
# =============================================================================


class TradeParameter(str, Enum):
    """Флаги переговоров, общие для всех торговых движков"""

    ACCEPTS_PARTIAL_TAKE = "accepts_partial_take"  # Taker может взять часть объёма
    TRUSTED_ARBITRATION = "trusted_arbitration"  # Споры решает доверенный арбитр
    TRUSTED_ESCROW = "trusted_escrow"  # Средства у доверенного эскроу
    TRADE_TIMES_OUT = "trade_times_out"  # Сделка истекает по таймауту
    BONDS_REQUIRED = "bonds_required"  # Стороны вносят залог


# =============================================================================
# TRADE DETAILS MODEL
# =============================================================================


class TradeDetails(BaseModel):
    """
    Параметры переговоров для всей сделки.

    parameters обязателен (может быть пустым множеством),
    content — произвольные условия, по умолчанию пусто.
    """

    parameters: frozenset[TradeParameter] = Field(..., description="Флаги переговоров")
    content: dict[str, Any] = Field(default_factory=dict, description="Свободные условия сделки")

    model_config = {"frozen": True}

    @field_serializer("parameters")
    def serialize_parameters(self, parameters: frozenset[TradeParameter]) -> list[str]:
        """Сортированный список, чтобы id события был детерминированным"""
        return sorted(p.value for p in parameters)

    def has(self, parameter: TradeParameter) -> bool:
        return parameter in self.parameters
