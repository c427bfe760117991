"""
Obligation — Модели обязательств сторон сделки

MakerObligation описывает, что предлагает maker, TakerObligation — что maker
требует взамен. kind — строковый тег (например, 'sell-X'), content — свободные
условия (сумма, способ расчёта и т.п.), которые ядро не интерпретирует.
"""

from typing import Any

from pydantic import BaseModel, Field


class Obligation(BaseModel):
    """Общая часть обязательства: тег и свободные условия"""

    kind: str = Field(..., min_length=1, description="Тег обязательства (например, 'sell-X')")
    content: dict[str, Any] = Field(..., description="Свободные условия обязательства")

    model_config = {"frozen": True}


class MakerObligation(Obligation):
    """Что предлагает maker"""


class TakerObligation(Obligation):
    """Что maker требует от taker взамен"""
