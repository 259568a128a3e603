"""
Credential Store.

CRUD for provider credentials. ``config`` is Fernet-encrypted at rest and
masked in every API response. Each create / update / delete / test writes an
IntegrationLog row.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.crypto import InvalidToken, decrypt_config, encrypt_config
from backend.app.core.exceptions import FlowlessError, NotFoundError, ValidationError
from backend.app.core.security import CurrentUser
from backend.app.models.credential_orm import IntegrationCredentialORM, IntegrationLogORM
from backend.app.schemas.credentials import ConnectionTestResult, CredentialCreate, CredentialUpdate
from backend.app.services.provider_adapters import CHANNEL_PROVIDERS, REQUIRED_CONFIG, get_adapter

logger = logging.getLogger(__name__)

# Shown as-is in responses; everything else is masked
NON_SECRET_KEYS = {"baseUrl", "fromPhone", "fromNumber", "senderId", "namespace", "defaultChannel", "workspace"}


def mask_value(value: Any) -> Any:
    if not isinstance(value, str):
        return "****"
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}****"


def mask_config(config: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (v if k in NON_SECRET_KEYS else mask_value(v)) for k, v in config.items()}


def decrypted_config(credential: IntegrationCredentialORM) -> Dict[str, Any]:
    try:
        return decrypt_config((credential.config or {})["encrypted"])
    except (KeyError, InvalidToken) as e:
        raise FlowlessError(f"Credential {credential.id} could not be decrypted") from e


def _check_required(provider: str, config: Dict[str, Any]) -> None:
    missing = [k for k in REQUIRED_CONFIG.get(provider, ()) if not config.get(k)]
    if missing:
        raise ValidationError(
            f"Missing required config for {provider}: {', '.join(missing)}",
            details={"missing": missing},
        )


async def log_operation(
    session: AsyncSession,
    credential_id: Optional[str],
    operation: str,
    status: str,
    details: Optional[Dict[str, Any]] = None,
    error_message: Optional[str] = None,
) -> IntegrationLogORM:
    entry = IntegrationLogORM(
        credential_id=credential_id,
        operation=operation,
        status=status,
        details=details,
        error_message=error_message,
    )
    session.add(entry)
    await session.flush()
    return entry


def _scope(stmt, user: CurrentUser):
    if user.organization_id:
        return stmt.where(IntegrationCredentialORM.organization_id == user.organization_id)
    return stmt.where(IntegrationCredentialORM.user_id == user.id)


async def create_credential(session: AsyncSession, user: CurrentUser, data: CredentialCreate) -> IntegrationCredentialORM:
    _check_required(data.provider, data.config)
    credential = IntegrationCredentialORM(
        user_id=user.id,
        organization_id=user.organization_id,
        provider=data.provider,
        name=data.name,
        config={"encrypted": encrypt_config(data.config)},
        is_active=data.is_active,
    )
    session.add(credential)
    await session.flush()
    await log_operation(session, credential.id, "create", "success", {"provider": data.provider, "name": data.name})
    logger.info(f"Credential created: {data.provider}/{data.name} (id={credential.id})")
    return credential


async def list_credentials(
    session: AsyncSession, user: CurrentUser, provider: Optional[str] = None
) -> List[IntegrationCredentialORM]:
    stmt = _scope(select(IntegrationCredentialORM), user)
    if provider:
        stmt = stmt.where(IntegrationCredentialORM.provider == provider)
    result = await session.execute(stmt.order_by(IntegrationCredentialORM.created_at.desc()))
    return list(result.scalars().all())


async def get_credential(session: AsyncSession, user: CurrentUser, credential_id: str) -> IntegrationCredentialORM:
    stmt = _scope(select(IntegrationCredentialORM).where(IntegrationCredentialORM.id == credential_id), user)
    credential = (await session.execute(stmt)).scalar_one_or_none()
    if credential is None:
        raise NotFoundError("Credential not found")
    return credential


async def update_credential(
    session: AsyncSession, user: CurrentUser, credential_id: str, data: CredentialUpdate
) -> IntegrationCredentialORM:
    credential = await get_credential(session, user, credential_id)
    changed = []
    if data.name is not None:
        credential.name = data.name
        changed.append("name")
    if data.config is not None:
        _check_required(credential.provider, data.config)
        credential.config = {"encrypted": encrypt_config(data.config)}
        changed.append("config")
    if data.is_active is not None:
        credential.is_active = data.is_active
        changed.append("isActive")
    await session.flush()
    await log_operation(session, credential.id, "update", "success", {"fields": changed})
    return credential


async def delete_credential(session: AsyncSession, user: CurrentUser, credential_id: str) -> None:
    credential = await get_credential(session, user, credential_id)
    await session.execute(delete(IntegrationLogORM).where(IntegrationLogORM.credential_id == credential.id))
    await session.delete(credential)
    await session.flush()
    await log_operation(
        session, None, "delete", "success",
        {"credentialId": credential_id, "provider": credential.provider, "name": credential.name},
    )


async def check_connection(
    session: AsyncSession,
    user: CurrentUser,
    credential_id: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ConnectionTestResult:
    """Call the provider's connection check and log the outcome."""
    credential = await get_credential(session, user, credential_id)
    adapter = get_adapter(credential.provider, decrypted_config(credential), transport=transport)
    try:
        result = await adapter.test_connection()
    except FlowlessError as e:
        result = ConnectionTestResult(success=False, message=e.message)

    await log_operation(
        session,
        credential.id,
        "test",
        "success" if result.success else "failed",
        details=result.details,
        error_message=None if result.success else result.message,
    )
    return result


async def list_logs(session: AsyncSession, user: CurrentUser, credential_id: str, limit: int = 50) -> List[IntegrationLogORM]:
    credential = await get_credential(session, user, credential_id)
    stmt = (
        select(IntegrationLogORM)
        .where(IntegrationLogORM.credential_id == credential.id)
        .order_by(IntegrationLogORM.created_at.desc())
        .limit(limit)
    )
    return list((await session.execute(stmt)).scalars().all())


async def get_channel_credential(
    session: AsyncSession,
    organization_id: str,
    channel: str,
    credential_id: Optional[str] = None,
) -> Optional[IntegrationCredentialORM]:
    """
    Most recently created active credential for an organization that can
    serve ``channel`` (whatsapp / sms / slack).
    """
    providers = CHANNEL_PROVIDERS.get(channel, ())
    stmt = select(IntegrationCredentialORM).where(
        IntegrationCredentialORM.organization_id == organization_id,
        IntegrationCredentialORM.is_active.is_(True),
        IntegrationCredentialORM.provider.in_(providers),
    )
    if credential_id:
        stmt = stmt.where(IntegrationCredentialORM.id == credential_id)
    stmt = stmt.order_by(IntegrationCredentialORM.created_at.desc()).limit(1)
    return (await session.execute(stmt)).scalar_one_or_none()
