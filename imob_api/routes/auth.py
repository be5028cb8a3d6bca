"""
Signup, login and token refresh.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from imob_api.auth import AuthClient
from imob_api.dependencies import get_auth_client, get_document_store
from imob_api.documents import DocumentStore
from imob_api.routes.common import payload
from imob_api.schemas import LoginRequest, LoginResponse, RefreshResponse, SignupRequest
from imob_api.security import CurrentUser, get_current_user
from imob_api.services import accounts

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", status_code=201)
def signup(
    body: SignupRequest,
    store: DocumentStore = Depends(get_document_store),
    auth_client: AuthClient = Depends(get_auth_client),
):
    return {"success": True, **accounts.signup(store, auth_client, payload(body))}


@router.post("/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    store: DocumentStore = Depends(get_document_store),
    auth_client: AuthClient = Depends(get_auth_client),
):
    return accounts.login(store, auth_client, body.email, body.password)


@router.post("/refresh", response_model=RefreshResponse)
def refresh(
    user: CurrentUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store),
    auth_client: AuthClient = Depends(get_auth_client),
):
    return accounts.refresh(store, auth_client, user.uid)
