"""
MakerOrderBuilder — пошаговая сборка MakerOrder

Каждый setter перезаписывает значение (последняя запись побеждает) и
возвращает builder для цепочки вызовов. build() проверяет наличие полей в
фиксированном порядке:

    trade_id → maker_obligation → taker_obligation → trade_details → engine_details

Первое отсутствующее поле даёт ValidationError с его именем. pow_difficulty по
умолчанию 0. build() не имеет побочных эффектов; builder можно использовать
повторно.
"""

from typing import TYPE_CHECKING, Any, Generic, Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel

from src.core.domain import (
    EngineDetails,
    MakerObligation,
    MakerOrder,
    TakerObligation,
    TradeDetails,
)
from src.core.domain.engine_details import TYPE_TAG_KEY, EngineSpecifics, SpecificsT
from src.core.engines import EngineRegistry, default_registry
from src.core.errors import ValidationError

if TYPE_CHECKING:
    from .publisher import OrderPublisher


ModelT = TypeVar("ModelT", bound=BaseModel)


def _coerce(model: Type[ModelT], value: Any) -> ModelT:
    """Экземпляр модели как есть, dict — через валидацию Pydantic"""
    if isinstance(value, model):
        return value
    return model.model_validate(value)


class MakerOrderBuilder(Generic[SpecificsT]):
    """Builder ордера maker, привязанный к пути публикации"""

    def __init__(
        self,
        publisher: Optional["OrderPublisher"] = None,
        registry: Optional[EngineRegistry] = None,
    ):
        self._publisher = publisher
        if registry is None:
            registry = publisher.registry if publisher is not None else default_registry()
        self._registry = registry

        # Параметры сделки
        self._trade_id: Optional[str] = None
        self._maker_obligation: Optional[MakerObligation] = None
        self._taker_obligation: Optional[TakerObligation] = None
        self._trade_details: Optional[TradeDetails] = None
        self._engine_details: Optional[EngineDetails[SpecificsT]] = None
        self._pow_difficulty: Optional[int] = None

    # =========================================================================
    # SETTERS
    # =========================================================================

    def trade_id(self, trade_id: str | UUID) -> "MakerOrderBuilder[SpecificsT]":
        self._trade_id = str(trade_id)
        return self

    def maker_obligation(self, maker_obligation: MakerObligation | dict) -> "MakerOrderBuilder[SpecificsT]":
        self._maker_obligation = _coerce(MakerObligation, maker_obligation)
        return self

    def taker_obligation(self, taker_obligation: TakerObligation | dict) -> "MakerOrderBuilder[SpecificsT]":
        self._taker_obligation = _coerce(TakerObligation, taker_obligation)
        return self

    def trade_details(self, trade_details: TradeDetails | dict) -> "MakerOrderBuilder[SpecificsT]":
        self._trade_details = _coerce(TradeDetails, trade_details)
        return self

    def engine_details(
        self, engine_details: EngineDetails[SpecificsT] | dict
    ) -> "MakerOrderBuilder[SpecificsT]":
        if isinstance(engine_details, EngineDetails):
            self._engine_details = engine_details
        else:
            self._engine_details = self._engine_details_from_dict(engine_details)
        return self

    def _engine_details_from_dict(self, data: Any) -> EngineDetails:
        """
        dict → EngineDetails с классом payload из реестра движков.

        Raises:
            UnknownEngineError: engine_name не зарегистрирован
            ValidationError: Некорректная структура или чужой тег типа
        """
        if not isinstance(data, dict):
            raise ValidationError(
                "engine_details", f"engine_details must be EngineDetails or dict, got {type(data).__name__}"
            )
        engine_name = data.get("engine_name")
        if not isinstance(engine_name, str) or not engine_name:
            raise ValidationError("engine_details", "engine_details.engine_name must be a non-empty string")

        specifics_cls = self._registry.specifics_type(engine_name)
        specifics = data.get("engine_specifics")
        if not isinstance(specifics, EngineSpecifics):
            if not isinstance(specifics, dict):
                raise ValidationError("engine_details", "engine_details.engine_specifics must be an object")
            fields = dict(specifics)
            tag = fields.pop(TYPE_TAG_KEY, specifics_cls.type_tag)
            if tag != specifics_cls.type_tag:
                raise ValidationError(
                    "engine_details",
                    f"engine {engine_name!r} does not use payload type {tag!r}",
                )
            specifics = specifics_cls.model_validate(fields)
        return EngineDetails(engine_name=engine_name, engine_specifics=specifics)

    def pow_difficulty(self, pow_difficulty: int) -> "MakerOrderBuilder[SpecificsT]":
        if pow_difficulty < 0:
            raise ValueError(f"pow_difficulty must be >= 0, got {pow_difficulty}")
        self._pow_difficulty = int(pow_difficulty)
        return self

    # =========================================================================
    # BUILD
    # =========================================================================

    def build(self) -> MakerOrder[SpecificsT]:
        """
        Проверка и сборка ордера.

        Returns:
            Новый immutable MakerOrder из глубоких копий полей builder

        Raises:
            ValidationError: Первое отсутствующее обязательное поле
        """
        if not self._trade_id:
            raise ValidationError("trade_id")
        if self._maker_obligation is None:
            raise ValidationError("maker_obligation")
        if self._taker_obligation is None:
            raise ValidationError("taker_obligation")
        if self._trade_details is None:
            raise ValidationError("trade_details")
        if self._engine_details is None:
            raise ValidationError("engine_details")

        return MakerOrder(
            trade_id=self._trade_id,
            maker_obligation=self._maker_obligation.model_copy(deep=True),
            taker_obligation=self._taker_obligation.model_copy(deep=True),
            trade_details=self._trade_details.model_copy(deep=True),
            engine_details=self._engine_details.model_copy(deep=True),
            pow_difficulty=self._pow_difficulty if self._pow_difficulty is not None else 0,
        )

    async def publish(self, timeout: Optional[float] = None) -> str:
        """
        build() + публикация через привязанный publisher.

        Returns:
            id опубликованного события
        """
        if self._publisher is None:
            raise RuntimeError("MakerOrderBuilder is not bound to a publisher")
        return await self._publisher.publish(self.build(), timeout=timeout)
