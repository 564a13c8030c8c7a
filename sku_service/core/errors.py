"""
Таксономия ошибок сервиса.

Каждая ошибка знает свой HTTP-статус и тип problem details (RFC 7807),
поэтому обработчики в `api/http/errors.py` не содержат ветвлений по типам.
Ошибки хранилища наружу не выходят: репозиторий и unit of work
переводят их в `ConflictError` или `InternalError`.
"""
from typing import Any, Dict, Optional


class SkuServiceError(Exception):
    """Базовая ошибка сервиса"""

    status_code: int = 500
    problem_type: str = "internal-error"
    title: str = "Internal Server Error"

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationError(SkuServiceError):
    """Запрос некорректен и может быть исправлен клиентом"""

    status_code = 400
    problem_type = "validation-error"
    title = "Validation Failed"


class NotFoundError(SkuServiceError):
    status_code = 404
    problem_type = "not-found"
    title = "Not Found"


class SkuNotFoundError(NotFoundError):
    title = "SKU Not Found"


class ConflictError(SkuServiceError):
    """Нарушение ограничения хранилища или бизнес-инварианта"""

    status_code = 409
    problem_type = "conflict"
    title = "Conflict"


class DuplicateSkuError(ConflictError):
    problem_type = "duplicate"
    title = "Duplicate SKU"


class VersionConflictError(ConflictError):
    """Версия записи не совпала с ожидаемой (оптимистическая блокировка)"""

    problem_type = "version-conflict"
    title = "Version Conflict"


class InternalError(SkuServiceError):
    """Непредвиденная ошибка; детали клиенту не раскрываются"""

    status_code = 500
    problem_type = "internal-error"
    title = "Internal Server Error"
