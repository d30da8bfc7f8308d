"""
Bearer-token authentication for the REST API.

Tokens are HS256 JWTs signed with PODCAST_STUDIO_JWT_SECRET; the `sub`
claim is the user id. When `auth allow anonymous` is set, requests
without a token act as the demo user.
"""

import os
import uuid
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from podcast_studio.rest.dependencies.config import get_config_manager

logger = logging.getLogger( __name__ )

ALGORITHM           = "HS256"
SECRET_ENV_VAR_NAME = "PODCAST_STUDIO_JWT_SECRET"
DEV_SECRET_KEY      = "dev-secret-key-DO-NOT-USE-IN-PRODUCTION-podcast-studio"
DEMO_USER_ID        = "demo-user-1"

# Missing credentials are handled here, not by FastAPI
security = HTTPBearer( auto_error=False )


def get_secret_key( environment: str = "development" ) -> str:
    """
    Signing key from the environment.

    Ensures:
        - Outside production, falls back to a development key with a warning

    Raises:
        - ValueError in production when PODCAST_STUDIO_JWT_SECRET is not set
    """
    secret = os.getenv( SECRET_ENV_VAR_NAME )
    if secret:
        return secret

    if environment == "production":
        raise ValueError( f"{SECRET_ENV_VAR_NAME} environment variable must be set in production!" )

    logger.warning( f"Using the default development JWT secret, set {SECRET_ENV_VAR_NAME} for production" )
    return DEV_SECRET_KEY


def create_access_token( user_id: str, expires_minutes: int = 1440, secret_key: Optional[str] = None ) -> str:
    """
    Generate a signed access token for user_id.

    Requires:
        - user_id is a non-empty string

    Ensures:
        - Token carries sub, iat, exp and jti claims

    Raises:
        - ValueError if user_id is empty
    """
    if not user_id:
        raise ValueError( "user_id is required" )

    now = datetime.now( timezone.utc )
    payload = {
        "sub" : user_id,
        "iat" : now,
        "exp" : now + timedelta( minutes=expires_minutes ),
        "jti" : uuid.uuid4().hex,
    }
    return jwt.encode( payload, secret_key or get_secret_key(), algorithm=ALGORITHM )


def decode_access_token( token: str, secret_key: Optional[str] = None ) -> Dict:
    """
    Verify signature and expiration and return the claims.

    Raises:
        - jwt.PyJWTError for an invalid or expired token
    """
    return jwt.decode( token, secret_key or get_secret_key(), algorithms=[ ALGORITHM ] )


def _unauthorized( detail: str ) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={ "WWW-Authenticate": "Bearer" },
    )


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends( security ),
    config_mgr = Depends( get_config_manager )
) -> str:
    """
    FastAPI dependency yielding the caller's user id.

    Ensures:
        - A valid token yields its sub claim
        - No token yields DEMO_USER_ID when anonymous access is allowed

    Raises:
        - HTTPException 401 for a missing (when not allowed) or invalid token
    """
    if credentials is None:
        if config_mgr.get( "auth allow anonymous", False, return_type="boolean" ):
            return config_mgr.get( "auth demo user id", DEMO_USER_ID )
        raise _unauthorized( "Not authenticated" )

    environment = config_mgr.get( "environment", "production" )
    try:
        claims = decode_access_token( credentials.credentials, get_secret_key( environment ) )

    except jwt.ExpiredSignatureError:
        raise _unauthorized( "Token has expired" )

    except jwt.PyJWTError as e:
        logger.warning( f"Token verification failed: {e}" )
        raise _unauthorized( "Invalid authentication credentials" )

    user_id = claims.get( "sub" )
    if not user_id:
        raise _unauthorized( "Token has no subject" )

    return user_id
