"""FastAPI dependencies, request identity and the services living on app.state."""

from http import HTTPStatus
from typing import TYPE_CHECKING, Annotated, Any

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ValidationError

from learnova.utils.api_models import error_detail
from learnova.utils.logger import get_logger

if TYPE_CHECKING:
    from learnova.core.config import LearnovaConf
    from learnova.database.handlers import CatalogHandler
    from learnova.services.capability_token import CapabilityTokenService
    from learnova.services.credential_pool import CredentialPool
    from learnova.services.upload import UploadPipeline
    from learnova.utils.background_tasks import BackgroundTasks
else:
    LearnovaConf = object
    CatalogHandler = object
    CapabilityTokenService = object
    CredentialPool = object
    UploadPipeline = object
    BackgroundTasks = object

logger = get_logger(__name__)

reusable_bearer = HTTPBearer(auto_error=False)


class Principal(BaseModel):
    """The caller, as asserted by the identity provider's token."""

    subject_id: str
    email: str = ""
    claims: dict[str, Any] = {}


# region app.state
def get_settings(request: Request) -> LearnovaConf:
    return request.app.state.settings


def get_catalog(request: Request) -> CatalogHandler:
    return request.app.state.catalog


def get_credential_pool(request: Request) -> CredentialPool | None:
    return request.app.state.credential_pool


def get_token_service(request: Request) -> CapabilityTokenService:
    return request.app.state.token_service


def get_upload_pipeline(request: Request) -> UploadPipeline | None:
    return request.app.state.upload_pipeline


def get_background_tasks(request: Request) -> BackgroundTasks:
    return request.app.state.background_tasks


SettingsDep = Annotated[LearnovaConf, Depends(get_settings)]
CatalogDep = Annotated[CatalogHandler, Depends(get_catalog)]
PoolDep = Annotated[CredentialPool | None, Depends(get_credential_pool)]
TokenServiceDep = Annotated[CapabilityTokenService, Depends(get_token_service)]
PipelineDep = Annotated[UploadPipeline | None, Depends(get_upload_pipeline)]
BackgroundTasksDep = Annotated[BackgroundTasks, Depends(get_background_tasks)]
BearerDep = Annotated[HTTPAuthorizationCredentials | None, Depends(reusable_bearer)]


# region Identity
def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=HTTPStatus.UNAUTHORIZED,
        detail=error_detail(message=message, reason="unauthenticated"),
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_principal(settings: SettingsDep, bearer: BearerDep) -> Principal:
    """Verify the identity provider's bearer token."""
    if bearer is None or not bearer.credentials:
        raise _unauthorized("Missing authorization header")

    identity = settings.identity
    if not identity.jwt_secret:
        logger.error("identity.jwt_secret is not set, cannot verify bearer tokens")
        raise _unauthorized("Invalid authentication")

    try:
        payload = jwt.decode(
            bearer.credentials,
            identity.jwt_secret,
            algorithms=[identity.algorithm],
            audience=identity.audience or None,
            options={"verify_aud": bool(identity.audience), "require": ["sub", "exp"]},
        )
        principal = Principal(subject_id=payload["sub"], email=payload.get("email") or "", claims=payload)
    except (jwt.InvalidTokenError, ValidationError) as e:
        logger.debug("Bearer token rejected: %s", type(e).__name__)
        raise _unauthorized("Invalid authentication") from e

    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def _claimed_role(claims: dict[str, Any], role_claim: str) -> set[str]:
    """Roles asserted at the top level or in `app_metadata`.

    `user_metadata` is writable by the user, so it never grants a role.
    """
    roles = set()
    for source in (claims, claims.get("app_metadata")):
        if isinstance(source, dict) and isinstance(source.get(role_claim), str):
            roles.add(source[role_claim])
    return roles


def get_current_producer(principal: CurrentPrincipal, settings: SettingsDep, catalog: CatalogDep) -> Principal:
    """The caller must be a teacher, by role claim or by owning a course."""
    identity = settings.identity
    if identity.teacher_role_value in _claimed_role(principal.claims, identity.teacher_role_claim):
        return principal

    if catalog.is_teacher(principal.subject_id):
        return principal

    logger.info("Upload refused, %s is not a teacher", principal.subject_id)
    raise HTTPException(
        status_code=HTTPStatus.FORBIDDEN,
        detail=error_detail(message="Only teachers can upload videos", reason="not_a_producer"),
    )


CurrentProducer = Annotated[Principal, Depends(get_current_producer)]
