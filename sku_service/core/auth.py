from typing import Optional

from fastapi import Header, HTTPException, status

from sku_service.core.config import settings
from sku_service.core.security import extract_token_from_header, verify_token

ANONYMOUS = "anonymous"


async def get_current_principal(authorization: Optional[str] = Header(None)) -> str:
    """
    Заглушка аутентификации: при выключенной проверке все запросы
    выполняются от имени anonymous, иначе нужен bearer-токен с `sub`.
    """
    if not settings.auth_enabled:
        return ANONYMOUS

    token = extract_token_from_header(authorization)
    payload = verify_token(token) if token else None
    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return str(payload["sub"])
