"""
API key routes: per-profile provider credentials, stored encrypted.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salescoach.api.auth import require_profile
from salescoach.api.dependencies import get_api_key_cipher
from salescoach.api.schemas import (
    ApiKeysResponse,
    ApiKeysSaveRequest,
    ApiKeysSaveResponse,
    MaskedApiKey,
    SavedKey,
)
from salescoach.crypto import ApiKeyCipher, hash_key, mask_api_key
from salescoach.db.connection import get_db
from salescoach.db.repositories import ApiKeyRepository
from salescoach.exceptions import ApiKeyDecryptionError
from salescoach.models.db import Profile

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_cipher(cipher: Optional[ApiKeyCipher]) -> ApiKeyCipher:
    if cipher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="API key encryption is not configured",
        )
    return cipher


@router.get("", response_model=ApiKeysResponse)
def list_api_keys(
    profile: Profile = Depends(require_profile),
    cipher: Optional[ApiKeyCipher] = Depends(get_api_key_cipher),
    session: Session = Depends(get_db),
) -> ApiKeysResponse:
    """
    List the caller's active keys, masked.

    Keys that fail to decrypt are left out of the listing.
    """
    cipher = _require_cipher(cipher)

    masked = []
    for api_key in ApiKeyRepository(session).get_active_by_profile(profile.id):
        try:
            plaintext = cipher.decrypt(api_key.encrypted_key)
        except ApiKeyDecryptionError as e:
            logger.error(f"Cannot decrypt {api_key.service} key {api_key.id}: {e}")
            continue
        masked.append(
            MaskedApiKey(
                id=api_key.id,
                service=api_key.service,
                key=mask_api_key(plaintext),
                is_active=api_key.is_active,
                last_used=api_key.last_used,
                created_at=api_key.created_at,
            )
        )
    return ApiKeysResponse(api_keys=masked)


@router.post("", response_model=ApiKeysSaveResponse)
def save_api_keys(
    body: ApiKeysSaveRequest,
    profile: Profile = Depends(require_profile),
    cipher: Optional[ApiKeyCipher] = Depends(get_api_key_cipher),
    session: Session = Depends(get_db),
) -> ApiKeysSaveResponse:
    """
    Store or replace keys per service.

    Entries without a service or key are skipped, as are entries whose
    write fails.
    """
    cipher = _require_cipher(cipher)
    repo = ApiKeyRepository(session)

    saved = []
    for entry in body.api_keys:
        service, key = entry.service.strip(), entry.key.strip()
        if not service or not key:
            continue

        savepoint = session.begin_nested()
        try:
            repo.upsert(profile.id, service, cipher.encrypt(key), hash_key(key))
            savepoint.commit()
        except SQLAlchemyError as e:
            savepoint.rollback()
            logger.error(f"Error saving {service} key for {profile.id}: {e}", exc_info=True)
            continue

        logger.info(f"Saved {service} API key for profile {profile.id}")
        saved.append(SavedKey(service=service))

    return ApiKeysSaveResponse(saved_keys=saved)
