from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from jose import JWTError
from pydantic import ValidationError

from app.stockflow.core.error_catalog import AppError, ErrorCatalog
from app.stockflow.core.security import TokenData, bearer_scheme, decode_token
from app.stockflow.db.session import get_db
from app.stockflow.services.transfers import TransferService


def get_current_actor(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> TokenData:
    if credentials is None or not credentials.credentials:
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    try:
        token_data = TokenData(**decode_token(credentials.credentials))
    except (JWTError, ValidationError, TypeError) as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc
    if not token_data.sub:
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    request.state.actor_id = token_data.sub
    return token_data


def get_transfer_service(db=Depends(get_db)) -> TransferService:
    return TransferService(db)


__all__ = ["get_current_actor", "get_transfer_service"]
