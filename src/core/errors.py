"""
Errors — Таксономия ошибок n3xB

Все ошибки наследуются от N3xbError, чтобы вызывающий код мог ловить их по виду:

- ValidationError: в builder отсутствует обязательное поле (локальная ошибка)
- UnknownEngineError: тег торгового движка не зарегистрирован (сообщение отбрасывается)
- OrderDecodeError / EventVerificationError: входящее сообщение не декодируется
- RelayConnectionError: relay недоступен
- PublishError: NotConnected / Rejected / Timeout при публикации
"""


class N3xbError(Exception):
    """Базовая ошибка протокола"""


# =============================================================================
# ORDER ERRORS
# =============================================================================


class ValidationError(N3xbError):
    """
    В MakerOrderBuilder не задано обязательное поле (или задано некорректно).

    Ошибка восстановимая: достаточно задать поле и повторить build().
    """

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"Missing required field: {field}")


class DuplicateTradeIdError(ValidationError):
    """trade_id уже был опубликован в текущей сессии Manager"""

    def __init__(self, trade_id: str):
        self.trade_id = trade_id
        super().__init__("trade_id", f"trade_id {trade_id!r} already published in this session")


class UnknownEngineError(N3xbError):
    """Тег торгового движка не найден в реестре"""

    def __init__(self, engine_name: str):
        self.engine_name = engine_name
        super().__init__(f"No trade engine registered for tag {engine_name!r}")


class OrderDecodeError(N3xbError):
    """Содержимое события не является корректным ордером"""


class EventVerificationError(N3xbError):
    """id или подпись события не проходят проверку"""


# =============================================================================
# RELAY ERRORS
# =============================================================================


class RelayConnectionError(N3xbError, ConnectionError):
    """Relay недоступен в момент обязательного подключения"""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Relay {url} unreachable: {reason}")


class ConnectTimeoutError(RelayConnectionError, TimeoutError):
    """Подключение к relay не завершилось за отведённое время"""

    def __init__(self, url: str, timeout: float):
        self.timeout = timeout
        super().__init__(url, f"connection not established within {timeout}s")


class PublishError(N3xbError):
    """Базовая ошибка публикации события"""


class NotConnectedError(PublishError):
    """Соединение не в состоянии CONNECTED"""


class PublishRejectedError(PublishError):
    """Relay (или локальная проверка) явно отклонил событие"""

    def __init__(self, reason: str, event_id: str | None = None, url: str | None = None):
        self.reason = reason
        self.event_id = event_id
        self.url = url
        where = f" by {url}" if url else ""
        super().__init__(f"Event {event_id or '<unsigned>'} rejected{where}: {reason}")


class PublishTimeoutError(PublishError, TimeoutError):
    """Relay не подтвердил приём события за отведённое время"""

    def __init__(self, event_id: str, timeout: float):
        self.event_id = event_id
        self.timeout = timeout
        super().__init__(f"No acknowledgement for event {event_id} within {timeout}s")
