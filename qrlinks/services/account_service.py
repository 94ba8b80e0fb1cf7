"""
Account Service

Registration, login, usage bookkeeping and plan changes.

Plan changes arrive from the billing webhook; their only effect is to
recompute the account's limits from the plan catalogue.
"""

import logging
from datetime import datetime
from typing import Optional

from qrlinks.core.exceptions import AuthenticationError, InvalidInputError
from qrlinks.core.plans import OwnerContext, Plan
from qrlinks.core.security import encode_token, hash_password, verify_password
from qrlinks.core.validators import MAX_DISPLAY_NAME_LENGTH, MIN_PASSWORD_LENGTH, normalize_email
from qrlinks.db.models import Account, as_utc, utc_now
from qrlinks.db.stores import AccountStore

logger = logging.getLogger(__name__)


class AccountService:

    def __init__(self, account_store: AccountStore):
        self.account_store = account_store

    async def register(self, email: str, password: str, display_name: str) -> Account:
        """
        Create a free-plan account.

        Raises:
            InvalidInputError: If email, password or display name are invalid
            DuplicateEmailError: If the email already has an account
        """
        email = normalize_email(email)
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidInputError(
                "password", f"must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        display_name = (display_name or "").strip()
        if not display_name:
            raise InvalidInputError("display_name", "is required")
        if len(display_name) > MAX_DISPLAY_NAME_LENGTH:
            raise InvalidInputError(
                "display_name", f"must be at most {MAX_DISPLAY_NAME_LENGTH} characters"
            )

        account = Account(
            email=email,
            password_hash=hash_password(password),
            display_name=display_name,
        )
        account.apply_plan(Plan.FREE)
        account = await self.account_store.insert(account)

        logger.info(f"Registered account {account.id}")
        return account

    async def authenticate(self, email: str, password: str) -> tuple[Account, str]:
        """
        Check credentials and issue an access token.

        Returns:
            (account, token)

        Raises:
            AuthenticationError: If the email is unknown or the password wrong
        """
        try:
            email = normalize_email(email)
        except InvalidInputError:
            raise AuthenticationError("Invalid credentials")

        account = await self.account_store.find_by_email(email)
        if account is None or not verify_password(password or "", account.password_hash):
            raise AuthenticationError("Invalid credentials")

        account = await self.refresh_usage(account)
        return account, encode_token(account.id)

    async def refresh_usage(self, account: Account, now: Optional[datetime] = None) -> Account:
        """Reset monthly_scans when the calendar month changed since the last reset."""
        now = as_utc(now or utc_now())
        last = as_utc(account.last_reset_date)
        if (last.year, last.month) == (now.year, now.month):
            return account

        account.monthly_scans = 0
        account.last_reset_date = now
        account.updated_at = now
        return await self.account_store.save(account)

    async def get_account(self, account_id: int) -> Account:
        account = await self.account_store.get(account_id)
        if account is None:
            raise AuthenticationError("Account not found")
        return account

    async def owner_context(self, account_id: int) -> OwnerContext:
        """Plan and limits as currently stored, for one request."""
        return OwnerContext.from_account(await self.get_account(account_id))

    async def change_plan(self, account_id: int, plan) -> Account:
        """
        Switch an account to another plan and recompute its limits.

        Raises:
            InvalidInputError: If the plan name or the account is unknown
        """
        tier = Plan.parse(plan)
        account = await self.account_store.get(account_id)
        if account is None:
            raise InvalidInputError("account_id", "unknown account")
        previous = account.plan

        account.apply_plan(tier)
        account = await self.account_store.save(account)

        logger.info(f"Account {account_id} plan changed: {previous} -> {tier.value}")
        return account
