# routes/auth/login.py - bearer tokens backed by the time-clock login service

from fastapi import APIRouter, HTTPException, Depends, status
import logging

from db.Schema.login import LoginRequest, TokenData, UserInfo
from routes.auth.JWTSecurity import create_access_token, ACCESS_TOKEN_EXPIRE
from services.attendance_api import AttendanceApiClient, get_attendance_api_client
from services.exceptions import AttendanceApiError, AuthenticationError
from utils.api_response import success_response

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


@router.post("/login")
async def login(
    payload: LoginRequest,
    api_client: AttendanceApiClient = Depends(get_attendance_api_client),
):
    """
    Verify credentials against the time-clock system and issue an access token.
    """
    try:
        user = await api_client.check_login(payload.username, payload.password)
    except AuthenticationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Login failed. Invalid username or password.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except AttendanceApiError as e:
        logger.error(f"Login service unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Login service unavailable",
        )

    token = create_access_token({"sub": user["uid"], "name": user["name"]})
    data = TokenData(
        token=token,
        expiresIn=int(ACCESS_TOKEN_EXPIRE.total_seconds()),
        user=UserInfo(**user),
    )
    logger.info(f"User {user['uid']} logged in")
    return success_response(data.model_dump(), "Login successful")
