from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from eventdesk.core.security import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")


async def get_caller_identity(token: str = Depends(oauth2_scheme)) -> str:
    """Resolve the bearer token to the identity contracts are owned by."""
    subject = decode_access_token(token)
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return subject
