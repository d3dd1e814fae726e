"""
Bearer token verification.

Accounts, passwords and OTP login live in the account service; it signs
short JWTs carrying the user id, and this API only checks them.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError

SECRET = os.getenv('JWT_SECRET', 'devsecret')
ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv('ACCESS_TOKEN_EXPIRE_MINUTES', str(60 * 24 * 7)))

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: int, expires_delta: timedelta = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode({'id': user_id, 'exp': expire}, SECRET, algorithm=ALGORITHM)


def user_id_from_token(token: str) -> Optional[int]:
    try:
        payload = jwt.decode(token, SECRET, algorithms=[ALGORITHM])
    except JWTError:
        return None
    try:
        return int(payload['id'])
    except (KeyError, TypeError, ValueError):
        return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={'WWW-Authenticate': 'Bearer'})


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> dict:
    if credentials is None:
        raise _unauthorized('Not authenticated')
    user_id = user_id_from_token(credentials.credentials)
    if user_id is None:
        raise _unauthorized('Invalid or expired token')
    return {'id': user_id}
