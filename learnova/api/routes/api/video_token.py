"""Video Token API Blueprint."""

from http import HTTPStatus
from typing import Annotated, NoReturn

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from learnova.api.deps import CurrentPrincipal, TokenServiceDep
from learnova.services.capability_token import (
    CapabilityTokenError,
    EntitlementDenied,
    IssuedToken,
    OriginRejected,
    ResourceMismatch,
    ResourceUnavailable,
    SubjectMismatch,
    TokenAlreadyUsed,
    TokenExpired,
    TokenInvalid,
    VerifiedClaims,
)
from learnova.utils.api_models import error_detail
from learnova.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/video-token", tags=["Video Token"])

STATUS_FOR_ERROR: dict[type[CapabilityTokenError], HTTPStatus] = {
    EntitlementDenied: HTTPStatus.FORBIDDEN,
    OriginRejected: HTTPStatus.FORBIDDEN,
    ResourceUnavailable: HTTPStatus.NOT_FOUND,
    TokenInvalid: HTTPStatus.UNAUTHORIZED,
    TokenExpired: HTTPStatus.UNAUTHORIZED,
    ResourceMismatch: HTTPStatus.FORBIDDEN,
    SubjectMismatch: HTTPStatus.FORBIDDEN,
    TokenAlreadyUsed: HTTPStatus.FORBIDDEN,
}


class VideoTokenRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    resource_id: str
    context_id: str


def _raise_http(e: CapabilityTokenError) -> NoReturn:
    status = STATUS_FOR_ERROR.get(type(e), HTTPStatus.BAD_REQUEST)
    raise HTTPException(
        status_code=status,
        detail=error_detail(message=str(e), reason=e.reason),
    ) from e


def request_origin(request: Request) -> str:
    """The Origin header, or the Referer for plain navigations."""
    return request.headers.get("origin") or request.headers.get("referer") or ""


def request_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for", "")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else ""


# region /api/v1/video-token
@router.post("", response_model_by_alias=True)
def issue_video_token(
    body: VideoTokenRequest,
    request: Request,
    principal: CurrentPrincipal,
    token_service: TokenServiceDep,
) -> IssuedToken:
    """API endpoint to get a single-use playback token for a lesson."""
    try:
        return token_service.issue(
            subject_id=principal.subject_id,
            resource_id=body.resource_id,
            context_id=body.context_id,
            origin=request_origin(request),
            request_agent=request.headers.get("user-agent", ""),
            request_ip=request_ip(request),
            email=principal.email,
        )
    except CapabilityTokenError as e:
        _raise_http(e)


@router.get("", response_model_by_alias=True)
def verify_video_token(
    token: str,
    resource_id: Annotated[str, Query(alias="resourceId")],
    principal: CurrentPrincipal,
    token_service: TokenServiceDep,
) -> VerifiedClaims:
    """API endpoint to redeem a playback token, succeeds once per token."""
    try:
        return token_service.verify(token, resource_id=resource_id, subject_id=principal.subject_id)
    except CapabilityTokenError as e:
        _raise_http(e)
