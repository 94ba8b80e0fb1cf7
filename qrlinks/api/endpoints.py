"""
FastAPI Endpoints for the QR Links Service

This module defines the link, redirect and analytics endpoints with
minimal logic. Endpoints only handle:
- Request parsing (Pydantic models)
- Rate limiting
- HTTP responses
- Delegating to the service layer

Service exceptions propagate to the handlers in qrlinks.api.errors, which
turn them into status codes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, RedirectResponse

from qrlinks.api.deps import (
    get_current_owner,
    get_link_service,
    get_optional_owner,
    get_redirect_service,
    get_stats_service,
)
from qrlinks.api.schemas import (
    CreateLinkRequest,
    CreateLinkResponse,
    DashboardResponse,
    LinkAnalyticsResponse,
    LinkDetailResponse,
    LinkListResponse,
    LinkSummary,
    MessageResponse,
    Pagination,
    UpdateLinkRequest,
)
from qrlinks.core.plans import OwnerContext
from qrlinks.core.rate_limit import RATE_LIMITS, limiter
from qrlinks.core.validators import sanitize_short_code
from qrlinks.middleware.logging import get_client_ip
from qrlinks.services.link_service import LinkService
from qrlinks.services.redirect_service import RedirectService
from qrlinks.services.stats_service import StatsService

router = APIRouter()


@router.post(
    "/links",
    response_model=CreateLinkResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Links"],
    summary="Create a link and its QR code",
    description="Takes a destination URL and returns a short identifier, its redirect URL and a QR image"
)
@limiter.limit(RATE_LIMITS["create"])
async def create_link(
    request: Request,  # Required for rate limiting (slowapi expects parameter named 'request')
    body: CreateLinkRequest,
    owner: Optional[OwnerContext] = Depends(get_optional_owner),
    link_service: LinkService = Depends(get_link_service)
) -> CreateLinkResponse:
    link = await link_service.create_link(
        destination_url=body.url,
        title=body.title,
        description=body.description,
        size=body.size,
        error_correction_level=body.error_correction_level,
        foreground_color=body.foreground_color,
        background_color=body.background_color,
        owner=owner,
    )
    return CreateLinkResponse.from_link(link, link_service.short_url(link))


@router.get(
    "/links",
    response_model=LinkListResponse,
    tags=["Links"],
    summary="List own links",
    description="Paginated links of the authenticated owner, newest first"
)
async def list_links(
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    owner: OwnerContext = Depends(get_current_owner),
    link_service: LinkService = Depends(get_link_service)
) -> LinkListResponse:
    links, pagination = await link_service.list_links(owner, page=page, page_size=page_size)
    return LinkListResponse(
        links=[LinkSummary.from_link(link, link_service.short_url(link)) for link in links],
        pagination=Pagination(**pagination),
    )


@router.get(
    "/links/{link_id}",
    response_model=LinkDetailResponse,
    tags=["Links"],
    summary="Get a link",
    description="Public view of a link; scan counters are included for the owner of a premium link"
)
async def get_link(
    link_id: int,
    owner: Optional[OwnerContext] = Depends(get_optional_owner),
    link_service: LinkService = Depends(get_link_service),
    stats_service: StatsService = Depends(get_stats_service)
) -> LinkDetailResponse:
    link = await link_service.get_link(link_id)
    return LinkDetailResponse.from_link(
        link,
        link_service.short_url(link),
        analytics=stats_service.link_summary(link, owner),
    )


@router.put(
    "/links/{link_id}",
    response_model=LinkSummary,
    tags=["Links"],
    summary="Update a link",
    description="Change title, description or active state of an owned link"
)
async def update_link(
    link_id: int,
    body: UpdateLinkRequest,
    owner: OwnerContext = Depends(get_current_owner),
    link_service: LinkService = Depends(get_link_service)
) -> LinkSummary:
    link = await link_service.update_link(link_id, owner, **body.model_dump(exclude_unset=True))
    return LinkSummary.from_link(link, link_service.short_url(link))


@router.delete(
    "/links/{link_id}",
    response_model=MessageResponse,
    tags=["Links"],
    summary="Delete a link",
    description="Permanently delete an owned link; its identifier is never reissued"
)
async def delete_link(
    link_id: int,
    owner: OwnerContext = Depends(get_current_owner),
    link_service: LinkService = Depends(get_link_service)
) -> MessageResponse:
    await link_service.delete_link(link_id, owner)
    return MessageResponse(message="Link deleted successfully")


@router.get(
    "/r/{identifier}",
    status_code=status.HTTP_302_FOUND,
    tags=["Redirect"],
    summary="Redirect to destination URL",
    description="Resolves a short identifier, records the scan and redirects"
)
@limiter.limit(RATE_LIMITS["redirect"])
async def redirect_to_destination(
    identifier: str,
    request: Request,
    redirect_service: RedirectService = Depends(get_redirect_service)
) -> RedirectResponse:
    """
    Redirect to the destination of an active link.

    Raises:
        HTTPException 400: If the identifier format is invalid
        HTTPException 404: If the identifier is unknown or its link inactive
        HTTPException 429: If rate limit exceeded
    """
    sanitized = sanitize_short_code(identifier)
    if not sanitized:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid identifier format: '{identifier}'. Identifiers must contain only alphanumeric characters."
        )

    destination = await redirect_service.resolve(
        sanitized,
        user_agent=request.headers.get("User-Agent"),
        ip_address=get_client_ip(request),
    )
    if destination is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="QR code not found or inactive"
        )

    return RedirectResponse(url=destination, status_code=status.HTTP_302_FOUND)


@router.get(
    "/analytics/dashboard",
    response_model=DashboardResponse,
    tags=["Analytics"],
    summary="Owner dashboard",
    description="Totals, trailing daily series, devices, locations, top links and recent activity"
)
@limiter.limit(RATE_LIMITS["analytics"])
async def get_dashboard(
    request: Request,
    owner: OwnerContext = Depends(get_current_owner),
    stats_service: StatsService = Depends(get_stats_service)
) -> DashboardResponse:
    return DashboardResponse.build(await stats_service.dashboard(owner))


@router.get(
    "/analytics/links/{link_id}",
    response_model=LinkAnalyticsResponse,
    tags=["Analytics"],
    summary="Link analytics",
    description="Scan statistics of one owned link"
)
@limiter.limit(RATE_LIMITS["analytics"])
async def get_link_analytics(
    link_id: int,
    request: Request,
    owner: OwnerContext = Depends(get_current_owner),
    stats_service: StatsService = Depends(get_stats_service)
) -> LinkAnalyticsResponse:
    return LinkAnalyticsResponse.build(await stats_service.link_analytics(link_id, owner))


@router.get(
    "/analytics/links/{link_id}/export",
    tags=["Analytics"],
    summary="Export link analytics",
    description="Retained scan history of one owned link as a JSON download"
)
@limiter.limit(RATE_LIMITS["analytics"])
async def export_link_analytics(
    link_id: int,
    request: Request,
    owner: OwnerContext = Depends(get_current_owner),
    stats_service: StatsService = Depends(get_stats_service)
) -> JSONResponse:
    data = await stats_service.export_link(link_id, owner)
    filename = f"qr-analytics-{data['link']['identifier']}.json"
    return JSONResponse(
        content=jsonable_encoder(data),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
