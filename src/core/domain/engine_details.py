"""
EngineDetails — Конверт с данными конкретного торгового движка

Ядро протокола не знает ни одного конкретного движка. Каждый движок объявляет
подкласс EngineSpecifics с уникальным type_tag; при сериализации тег
встраивается в payload под ключом "type", при десериализации реестр движков
(src.core.engines) по этому тегу выбирает нужный класс.
"""

from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, Field

from src.core.errors import OrderDecodeError


TYPE_TAG_KEY = "type"


# =============================================================================
# ENGINE SPECIFICS
# =============================================================================


class EngineSpecifics(BaseModel):
    """
    Базовый класс payload торгового движка.

    Подкласс обязан задать type_tag. Равенство, копирование (model_copy) и
    repr предоставляет Pydantic.
    """

    type_tag: ClassVar[str] = ""

    model_config = {"frozen": True}

    def to_payload(self) -> dict[str, Any]:
        """Сериализация с встроенным тегом типа"""
        if not self.type_tag:
            raise TypeError(f"{type(self).__name__} does not declare type_tag")
        payload = self.model_dump(mode="json")
        payload[TYPE_TAG_KEY] = self.type_tag
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "EngineSpecifics":
        """
        Десериализация payload, тег которого уже сопоставлен с этим классом.

        Raises:
            OrderDecodeError: Если тег не совпадает или поля не проходят валидацию
        """
        tag = payload.get(TYPE_TAG_KEY)
        if tag != cls.type_tag:
            raise OrderDecodeError(f"payload tag {tag!r} does not match {cls.type_tag!r}")
        fields = {k: v for k, v in payload.items() if k != TYPE_TAG_KEY}
        try:
            return cls.model_validate(fields)
        except ValueError as e:
            raise OrderDecodeError(f"invalid {cls.type_tag!r} engine specifics: {e}") from e


SpecificsT = TypeVar("SpecificsT", bound=EngineSpecifics)


# =============================================================================
# ENGINE DETAILS
# =============================================================================


class EngineDetails(BaseModel, Generic[SpecificsT]):
    """
    Имя движка + непрозрачный payload.

    engine_name — отдельное поле уровня ядра; оно должно совпадать с именем,
    зарегистрированным у получателя.
    """

    engine_name: str = Field(..., min_length=1, description="Имя торгового движка")
    engine_specifics: SpecificsT = Field(..., description="Payload торгового движка")

    model_config = {"frozen": True}

    def to_payload(self) -> dict[str, Any]:
        return {
            "engine_name": self.engine_name,
            "engine_specifics": self.engine_specifics.to_payload(),
        }
