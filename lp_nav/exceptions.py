"""
Исключения сканера позиций.

Ошибки конфигурации фатальны в точке использования и не ретраятся,
rate limit ретраится внутри батчера и превращается в фатальную ошибку
только после исчерпания попыток.
"""


class LpNavError(Exception):
    """Базовое исключение пакета."""
    pass


class ConfigurationError(LpNavError):
    """Нет адреса контракта, RPC URL или неподдерживаемая сеть."""
    pass


class UnsupportedTokenError(ConfigurationError):
    """Токен отсутствует в реестре LST контрактов."""
    pass


class RateLimitExceededError(LpNavError):
    """Провайдер продолжает отвечать rate limit после всех ретраев."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class StoreError(LpNavError):
    """Повреждённый файл кэша (пулы или токены)."""
    pass
