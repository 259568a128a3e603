"""
Integration credentials API.

Config maps are stored encrypted and always returned masked.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import CurrentUser, get_current_user
from backend.app.models.credential_orm import IntegrationCredentialORM
from backend.app.schemas.common import DeleteResponse
from backend.app.schemas.credentials import (
    ConnectionTestResult,
    CredentialCreate,
    CredentialResponse,
    CredentialUpdate,
    IntegrationLogResponse,
)
from backend.app.schemas.messaging import ProviderTemplate
from backend.app.services import credential_service
from backend.app.services.provider_adapters import get_adapter, get_provider_transport

logger = logging.getLogger(__name__)
router = APIRouter()


def _to_response(credential: IntegrationCredentialORM) -> CredentialResponse:
    return CredentialResponse(
        id=credential.id,
        provider=credential.provider,
        name=credential.name,
        config=credential_service.mask_config(credential_service.decrypted_config(credential)),
        is_active=credential.is_active,
        created_at=credential.created_at,
        updated_at=credential.updated_at,
    )


@router.get("", response_model=List[CredentialResponse])
async def list_credentials(
    provider: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return [_to_response(c) for c in await credential_service.list_credentials(db, current_user, provider)]


@router.post("", response_model=CredentialResponse, status_code=201)
async def create_credential(
    payload: CredentialCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return _to_response(await credential_service.create_credential(db, current_user, payload))


@router.get("/{credential_id}", response_model=CredentialResponse)
async def get_credential(
    credential_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return _to_response(await credential_service.get_credential(db, current_user, credential_id))


@router.put("/{credential_id}", response_model=CredentialResponse)
async def update_credential(
    credential_id: str,
    payload: CredentialUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return _to_response(await credential_service.update_credential(db, current_user, credential_id, payload))


@router.delete("/{credential_id}", response_model=DeleteResponse)
async def delete_credential(
    credential_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await credential_service.delete_credential(db, current_user, credential_id)
    return DeleteResponse(id=credential_id)


@router.post("/{credential_id}/test", response_model=ConnectionTestResult)
async def test_credential(
    credential_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    transport=Depends(get_provider_transport),
):
    """Call the provider's connection check. A failed check is a 200 with ``success: false``."""
    return await credential_service.check_connection(db, current_user, credential_id, transport=transport)


@router.get("/{credential_id}/logs", response_model=List[IntegrationLogResponse])
async def list_logs(
    credential_id: str,
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    logs = await credential_service.list_logs(db, current_user, credential_id, limit)
    return [IntegrationLogResponse.model_validate(entry) for entry in logs]


@router.get("/{credential_id}/templates", response_model=List[ProviderTemplate])
async def list_templates(
    credential_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    transport=Depends(get_provider_transport),
):
    """Message templates registered with the provider (WhatsApp / SMS)."""
    credential = await credential_service.get_credential(db, current_user, credential_id)
    adapter = get_adapter(credential.provider, credential_service.decrypted_config(credential), transport=transport)
    return await adapter.list_templates()
