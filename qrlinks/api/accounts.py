"""
Account and Billing Endpoints

- /auth: registration, login and the current account
- /billing/plan-changed: notification from the billing provider that an
  account now holds another plan; the only effect is a recomputation of
  the account's limits
"""

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status

from qrlinks.api.deps import get_account_service, get_current_account_id
from qrlinks.api.schemas import (
    AccountResponse,
    LoginRequest,
    PlanChangedRequest,
    RegisterRequest,
    TokenResponse,
)
from qrlinks.core.exceptions import AuthenticationError
from qrlinks.core.rate_limit import RATE_LIMITS, limiter
from qrlinks.core.security import encode_token
from qrlinks.core.setting import settings
from qrlinks.services.account_service import AccountService

router = APIRouter()


@router.post(
    "/auth/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Auth"],
    summary="Register an account",
    description="Creates a free-plan account and returns an access token"
)
@limiter.limit(RATE_LIMITS["auth"])
async def register(
    request: Request,
    body: RegisterRequest,
    account_service: AccountService = Depends(get_account_service)
) -> TokenResponse:
    account = await account_service.register(body.email, body.password, body.display_name)
    return TokenResponse(
        access_token=encode_token(account.id),
        account=AccountResponse.from_account(account),
    )


@router.post(
    "/auth/login",
    response_model=TokenResponse,
    tags=["Auth"],
    summary="Log in"
)
@limiter.limit(RATE_LIMITS["auth"])
async def login(
    request: Request,
    body: LoginRequest,
    account_service: AccountService = Depends(get_account_service)
) -> TokenResponse:
    account, token = await account_service.authenticate(body.email, body.password)
    return TokenResponse(access_token=token, account=AccountResponse.from_account(account))


@router.get(
    "/auth/me",
    response_model=AccountResponse,
    tags=["Auth"],
    summary="Current account",
    description="Plan, limits and usage of the authenticated account"
)
async def me(
    account_id: int = Depends(get_current_account_id),
    account_service: AccountService = Depends(get_account_service)
) -> AccountResponse:
    account = await account_service.get_account(account_id)
    return AccountResponse.from_account(await account_service.refresh_usage(account))


@router.post(
    "/billing/plan-changed",
    response_model=AccountResponse,
    tags=["Billing"],
    summary="Plan change notification",
    description="Switches an account to a new plan and recomputes its limits"
)
async def plan_changed(
    body: PlanChangedRequest,
    x_webhook_secret: Optional[str] = Header(None),
    account_service: AccountService = Depends(get_account_service)
) -> AccountResponse:
    if not x_webhook_secret or not hmac.compare_digest(
        x_webhook_secret.encode("utf-8"), settings.BILLING_WEBHOOK_SECRET.encode("utf-8")
    ):
        raise AuthenticationError("Invalid webhook secret")

    account = await account_service.change_plan(body.account_id, body.plan)
    return AccountResponse.from_account(account)
