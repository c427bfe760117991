"""
MakerOrder — Модель опубликованного предложения сделки

Immutable Pydantic модель. Локально создаётся через MakerOrderBuilder.build()
(src.order.builder), входящие ордера собирает кодек (src.order.codec).
"""

from typing import Generic

from pydantic import BaseModel, Field

from .engine_details import EngineDetails, SpecificsT
from .obligation import MakerObligation, TakerObligation
from .trade_details import TradeDetails


# =============================================================================
# MAKER ORDER MODEL
# =============================================================================


class MakerOrder(BaseModel, Generic[SpecificsT]):
    """
    Готовый к публикации ордер maker.

    trade_id уникален в пределах сессии Manager; по нему taker сопоставляет
    свои ответы с ордером.
    """

    trade_id: str = Field(..., min_length=1, description="Идентификатор сделки")
    maker_obligation: MakerObligation = Field(..., description="Что предлагает maker")
    taker_obligation: TakerObligation = Field(..., description="Что maker требует взамен")
    trade_details: TradeDetails = Field(..., description="Параметры сделки")
    engine_details: EngineDetails[SpecificsT] = Field(..., description="Данные торгового движка")
    pow_difficulty: int = Field(0, ge=0, description="Требуемая сложность PoW (ведущие нулевые биты)")

    model_config = {"frozen": True}

    @property
    def engine_name(self) -> str:
        return self.engine_details.engine_name


class ReceivedOrder(BaseModel):
    """Ордер, полученный по подписке, вместе с метаданными события"""

    event_id: str = Field(..., min_length=64, max_length=64, description="id события (hex)")
    maker_pubkey: str = Field(..., min_length=1, description="Публичный ключ maker (hex)")
    created_at: int = Field(..., ge=0, description="Время создания события (Unix, секунды)")
    order: MakerOrder = Field(..., description="Декодированный ордер")

    model_config = {"frozen": True}
