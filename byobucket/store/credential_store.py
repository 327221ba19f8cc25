from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from byobucket.core.crypto import SecretCipher
from byobucket.core.errors import (
    AccountNotFoundError,
    PersistenceError,
    ResourceNotFoundError,
)
from byobucket.db.models import Account, AddonResource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantAccount:
    """Decrypted AWS credentials for one owner. Held in memory only."""

    owner_id: str
    aws_access_key_id: str
    aws_secret_access_key: str

    def __repr__(self) -> str:
        return f"TenantAccount(owner_id={self.owner_id!r}, aws_access_key_id={self.aws_access_key_id!r})"


class CredentialStore:
    """Owns persistence of accounts and add-on resources.

    Secret access keys are Fernet-encrypted before they reach the database and
    decrypted on read. A secret that no configured key can decrypt raises
    PersistenceError rather than coming back empty.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cipher: SecretCipher,
    ) -> None:
        self._session_factory = session_factory
        self._cipher = cipher

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Database error while %s: %s", action, exc)
            raise PersistenceError(f"Database error while {action}") from exc

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def save_account(self, account: TenantAccount) -> None:
        """Register credentials for an owner, replacing any previous registration."""
        token = self._cipher.encrypt(account.aws_secret_access_key)
        async with self._session(f"saving account {account.owner_id}") as session:
            await session.merge(
                Account(
                    owner_id=account.owner_id,
                    aws_access_key_id=account.aws_access_key_id,
                    aws_secret_access_key_token=token,
                )
            )
            await session.commit()
        logger.info("Saved account", extra={"owner_id": account.owner_id})

    async def find_account(self, owner_id: str) -> TenantAccount:
        async with self._session(f"loading account {owner_id}") as session:
            row = await session.get(Account, owner_id)
        if row is None:
            logger.info("Account for %s not found in database", owner_id)
            raise AccountNotFoundError(f"No AWS account registered for owner {owner_id}")
        return self._to_tenant_account(row)

    async def find_accounts(self, owner_ids: list[str]) -> dict[str, str]:
        """Map each registered owner id to its AWS access key id. Unregistered ids are absent."""
        if not owner_ids:
            return {}
        async with self._session("listing accounts") as session:
            result = await session.execute(
                select(Account.owner_id, Account.aws_access_key_id).where(
                    Account.owner_id.in_(owner_ids)
                )
            )
            rows = result.all()
        return {owner_id: key_id for owner_id, key_id in rows}

    async def delete_account(self, owner_id: str) -> None:
        async with self._session(f"deleting account {owner_id}") as session:
            result = await session.execute(delete(Account).where(Account.owner_id == owner_id))
            await session.commit()
        if result.rowcount != 1:
            logger.warning(
                "While deleting account for owner %s, %d rows were affected. 1 row was expected.",
                owner_id,
                result.rowcount,
            )

    async def rotate_secrets(self) -> int:
        """Re-encrypt every stored secret under the primary key. Returns the number rotated."""
        async with self._session("rotating account secrets") as session:
            result = await session.execute(select(Account))
            accounts = result.scalars().all()
            for account in accounts:
                account.aws_secret_access_key_token = self._cipher.rotate(
                    account.aws_secret_access_key_token
                )
            await session.commit()
        logger.info("Rotated %d account secrets", len(accounts))
        return len(accounts)

    # ------------------------------------------------------------------
    # Add-on resources
    # ------------------------------------------------------------------

    async def save_resource(self, resource: AddonResource) -> None:
        async with self._session(
            f"saving resource {resource.provider_resource_id}"
        ) as session:
            session.add(resource)
            await session.commit()

    async def find_resource_and_owner(
        self, provider_resource_id: str
    ) -> tuple[AddonResource, TenantAccount]:
        async with self._session(
            f"loading resource {provider_resource_id}"
        ) as session:
            result = await session.execute(
                select(AddonResource, Account)
                .join(Account, Account.owner_id == AddonResource.owner_id)
                .where(AddonResource.provider_resource_id == provider_resource_id)
            )
            row = result.first()
        if row is None:
            logger.info("Resource %s not found in database", provider_resource_id)
            raise ResourceNotFoundError(f"No resource with provider id {provider_resource_id}")
        resource, account = row
        return resource, self._to_tenant_account(account)

    async def mark_for_deletion(self, provider_resource_id: str) -> None:
        await self._update_resource(
            provider_resource_id,
            "marking for deletion",
            mark_for_deletion=True,
        )

    async def set_deleted(self, provider_resource_id: str) -> None:
        await self._update_resource(
            provider_resource_id,
            "setting deleted",
            deleted_at=func.now(),
        )

    async def _update_resource(self, provider_resource_id: str, action: str, **values: object) -> None:
        async with self._session(f"{action} resource {provider_resource_id}") as session:
            result = await session.execute(
                update(AddonResource)
                .where(AddonResource.provider_resource_id == provider_resource_id)
                .values(**values)
            )
            await session.commit()
        if result.rowcount != 1:
            logger.warning(
                "While %s resource %s, %d rows were affected. 1 row was expected.",
                action,
                provider_resource_id,
                result.rowcount,
            )

    def _to_tenant_account(self, row: Account) -> TenantAccount:
        return TenantAccount(
            owner_id=row.owner_id,
            aws_access_key_id=row.aws_access_key_id,
            aws_secret_access_key=self._cipher.decrypt(row.aws_secret_access_key_token),
        )
