"""
Engine Payload Registry — теговый полиморфизм торговых движков

Каждый движок при старте программы регистрирует своё имя и класс payload
(подкласс EngineSpecifics). Формат провода несёт {engine_name, engine_specifics},
где engine_specifics содержит тег "type"; декодирование выбирает класс по тегу.
Ядро никогда не сопоставляет конкретные типы движков.
"""

from typing import Any, Callable, Dict, Optional, Type, TypeVar

from src.core.domain.engine_details import TYPE_TAG_KEY, EngineDetails, EngineSpecifics
from src.core.errors import OrderDecodeError, UnknownEngineError


SpecificsClass = TypeVar("SpecificsClass", bound=Type[EngineSpecifics])


# =============================================================================
# ENGINE REGISTRY
# =============================================================================


class EngineRegistry:
    """
    Реестр торговых движков.

    Хранит два индекса:
    - engine_name → класс payload
    - type_tag → класс payload (для выбора декодера по тегу в payload)
    """

    def __init__(self):
        self._engines: Dict[str, Type[EngineSpecifics]] = {}
        self._tags: Dict[str, Type[EngineSpecifics]] = {}

    def register(
        self, engine_name: str, specifics_cls: Optional[Type[EngineSpecifics]] = None
    ) -> Any:
        """
        Регистрация движка.

        Можно вызывать напрямую или как декоратор класса:

            @registry.register("simple-swap")
            class SimpleSwapSpecifics(EngineSpecifics): ...

        Args:
            engine_name: Уникальное имя движка
            specifics_cls: Класс payload; если не задан, возвращается декоратор

        Raises:
            ValueError: Если имя или тег уже заняты другим классом
            TypeError: Если класс не является EngineSpecifics с type_tag
        """
        if specifics_cls is None:

            def decorator(cls: SpecificsClass) -> SpecificsClass:
                self.register(engine_name, cls)
                return cls

            return decorator

        if not engine_name:
            raise ValueError("engine_name must be non-empty")
        if not (isinstance(specifics_cls, type) and issubclass(specifics_cls, EngineSpecifics)):
            raise TypeError(f"{specifics_cls!r} is not an EngineSpecifics subclass")
        tag = specifics_cls.type_tag
        if not tag:
            raise TypeError(f"{specifics_cls.__name__} does not declare type_tag")

        existing = self._engines.get(engine_name)
        if existing is not None and existing is not specifics_cls:
            raise ValueError(
                f"engine {engine_name!r} already registered with {existing.__name__}"
            )
        tagged = self._tags.get(tag)
        if tagged is not None and tagged is not specifics_cls:
            raise ValueError(f"type tag {tag!r} already used by {tagged.__name__}")

        self._engines[engine_name] = specifics_cls
        self._tags[tag] = specifics_cls
        return specifics_cls

    def unregister(self, engine_name: str) -> None:
        specifics_cls = self._engines.pop(engine_name, None)
        if specifics_cls is None:
            return
        if specifics_cls not in self._engines.values():
            self._tags.pop(specifics_cls.type_tag, None)

    def is_registered(self, engine_name: str) -> bool:
        return engine_name in self._engines

    def __contains__(self, engine_name: object) -> bool:
        return engine_name in self._engines

    def names(self) -> list[str]:
        return sorted(self._engines)

    def specifics_type(self, engine_name: str) -> Type[EngineSpecifics]:
        """
        Класс payload для имени движка.

        Raises:
            UnknownEngineError: Если движок не зарегистрирован
        """
        try:
            return self._engines[engine_name]
        except KeyError:
            raise UnknownEngineError(engine_name) from None

    # =========================================================================
    # ENCODE / DECODE
    # =========================================================================

    def encode(self, details: EngineDetails) -> Dict[str, Any]:
        """
        Сериализация EngineDetails в dict для провода.

        Raises:
            UnknownEngineError: Если engine_name не зарегистрирован
            TypeError: Если payload не того класса, что зарегистрирован под engine_name
        """
        expected = self.specifics_type(details.engine_name)
        if not isinstance(details.engine_specifics, expected):
            raise TypeError(
                f"engine {details.engine_name!r} expects {expected.__name__}, "
                f"got {type(details.engine_specifics).__name__}"
            )
        return details.to_payload()

    def decode(self, payload: Any) -> EngineDetails:
        """
        Десериализация EngineDetails: класс выбирается по тегу в engine_specifics.

        Raises:
            UnknownEngineError: Тег или engine_name не зарегистрированы
            OrderDecodeError: Структура payload некорректна
        """
        if not isinstance(payload, dict):
            raise OrderDecodeError("engine_details must be an object")
        engine_name = payload.get("engine_name")
        specifics = payload.get("engine_specifics")
        if not isinstance(engine_name, str) or not engine_name:
            raise OrderDecodeError("engine_details.engine_name must be a non-empty string")
        if not isinstance(specifics, dict):
            raise OrderDecodeError("engine_details.engine_specifics must be an object")

        tag = specifics.get(TYPE_TAG_KEY)
        if not isinstance(tag, str):
            raise OrderDecodeError("engine_specifics carries no type tag")
        decoder = self._tags.get(tag)
        if decoder is None:
            raise UnknownEngineError(tag)

        expected = self.specifics_type(engine_name)
        if expected is not decoder:
            raise OrderDecodeError(
                f"engine {engine_name!r} does not use payload type {tag!r}"
            )
        return EngineDetails(engine_name=engine_name, engine_specifics=decoder.from_payload(specifics))


# Глобальный реестр, заполняется движками при импорте
_DEFAULT_REGISTRY = EngineRegistry()


def default_registry() -> EngineRegistry:
    return _DEFAULT_REGISTRY


def register_engine(engine_name: str) -> Callable[[SpecificsClass], SpecificsClass]:
    """Декоратор регистрации движка в глобальном реестре"""
    return _DEFAULT_REGISTRY.register(engine_name)
