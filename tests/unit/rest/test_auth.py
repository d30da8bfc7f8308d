#!/usr/bin/env python3
"""
Unit tests for bearer-token authentication.

Run with: pytest -v tests/unit/rest/test_auth.py
"""

import os
import asyncio
from unittest.mock import Mock, patch

import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from podcast_studio.rest.auth import (
    ALGORITHM,
    DEV_SECRET_KEY,
    DEMO_USER_ID,
    SECRET_ENV_VAR_NAME,
    create_access_token,
    decode_access_token,
    get_current_user_id,
    get_secret_key,
)

SECRET = "unit-test-secret-at-least-thirty-two-bytes"


def _config( allow_anonymous: bool = False, environment: str = "testing" ) -> Mock:
    values = {
        "auth allow anonymous" : allow_anonymous,
        "auth demo user id"    : DEMO_USER_ID,
        "environment"          : environment,
    }
    config_mgr = Mock()
    config_mgr.get.side_effect = lambda key, default=None, return_type="string": values.get( key, default )
    return config_mgr


def _bearer( token: str ) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials( scheme="Bearer", credentials=token )


@pytest.fixture( autouse=True )
def jwt_secret():
    with patch.dict( os.environ, { SECRET_ENV_VAR_NAME: SECRET } ):
        yield


class TestTokens:

    def test_round_trip_claims( self ):
        claims = decode_access_token( create_access_token( "user-42" ) )

        assert claims[ "sub" ] == "user-42"
        assert claims[ "exp" ] > claims[ "iat" ]
        assert len( claims[ "jti" ] ) == 32

    def test_empty_user_rejected( self ):
        with pytest.raises( ValueError ):
            create_access_token( "" )

    def test_wrong_secret_rejected( self ):
        token = create_access_token( "user-42", secret_key="another-secret-also-thirty-two-bytes-long" )

        with pytest.raises( jwt.InvalidSignatureError ):
            decode_access_token( token )

    def test_secret_from_environment( self ):
        assert get_secret_key( "production" ) == SECRET

    def test_production_requires_secret( self ):
        with patch.dict( os.environ, { }, clear=True ):
            with pytest.raises( ValueError ):
                get_secret_key( "production" )

            assert get_secret_key( "development" ) == DEV_SECRET_KEY


class TestGetCurrentUserId:

    def test_valid_token( self ):
        user_id = asyncio.run( get_current_user_id( _bearer( create_access_token( "user-42" ) ), _config() ) )

        assert user_id == "user-42"

    def test_missing_token_anonymous_allowed( self ):
        assert asyncio.run( get_current_user_id( None, _config( allow_anonymous=True ) ) ) == DEMO_USER_ID

    def test_missing_token_rejected( self ):
        with pytest.raises( HTTPException ) as excinfo:
            asyncio.run( get_current_user_id( None, _config() ) )

        assert excinfo.value.status_code == 401
        assert excinfo.value.headers[ "WWW-Authenticate" ] == "Bearer"

    def test_expired_token( self ):
        token = create_access_token( "user-42", expires_minutes=-5 )

        with pytest.raises( HTTPException ) as excinfo:
            asyncio.run( get_current_user_id( _bearer( token ), _config() ) )

        assert excinfo.value.status_code == 401
        assert "expired" in excinfo.value.detail

    def test_garbage_token( self ):
        with pytest.raises( HTTPException ) as excinfo:
            asyncio.run( get_current_user_id( _bearer( "not.a.jwt" ), _config( allow_anonymous=True ) ) )

        assert excinfo.value.status_code == 401

    def test_token_without_subject( self ):
        token = jwt.encode( { "iat": 0 }, SECRET, algorithm=ALGORITHM )

        with pytest.raises( HTTPException ) as excinfo:
            asyncio.run( get_current_user_id( _bearer( token ), _config() ) )

        assert excinfo.value.status_code == 401


class TestProtectedEndpoint:

    def test_bearer_header_reaches_router( self, client, config_mgr ):
        """A real token identifies the caller end to end."""
        token = create_access_token( "user-42" )

        response = client.get( "/podcasts", headers={ "Authorization": f"Bearer {token}" } )

        assert response.status_code == 200
        assert response.json() == [ ]

    def test_anonymous_disabled( self, client, config_mgr ):
        config_mgr.set_config( "auth allow anonymous", "False" )

        assert client.get( "/podcasts" ).status_code == 401
