"""hs_order REST API: order lifecycle, provider feed, admin and public stats."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.hs_common.database import get_db_session
from src.hs_common.response import ApiResponse, success_response
from src.hs_gateway.auth.dependencies import (
    get_current_identity,
    require_admin,
    require_provider,
)
from src.hs_gateway.auth.identity import Identity, ProviderIdentity
from src.hs_order.application.schemas import (
    AcceptPostulationRequest,
    CreateOrderRequest,
    SubmitPostulationRequest,
)
from src.hs_order.application.service import OrderApplicationService
from src.hs_order.domain.constants import PUBLIC_RECENT_MAX_LIMIT

router = APIRouter(prefix="/orders", tags=["orders"])


def get_order_service(request: Request) -> OrderApplicationService:
    """Wire the service to the realtime hub and scan worker owned by the app."""
    state = request.app.state
    return OrderApplicationService(
        notifier=getattr(state, "hub", None),
        dispatcher=getattr(state, "candidate_worker", None),
    )


def _wrap(request: Request, data: object) -> ApiResponse:
    resp = success_response(data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("", status_code=201)
async def create_order(
    body: CreateOrderRequest,
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OrderApplicationService, Depends(get_order_service)],
    request: Request,
) -> ApiResponse:
    data = await service.create_order(db, identity, body)
    return _wrap(request, data.model_dump())


@router.get("/mine")
async def list_my_orders(
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OrderApplicationService, Depends(get_order_service)],
    request: Request,
) -> ApiResponse:
    data = await service.list_client_orders(db, identity)
    return _wrap(request, [o.model_dump() for o in data])


@router.get("/feed")
async def list_available_jobs(
    identity: Annotated[ProviderIdentity, Depends(require_provider)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OrderApplicationService, Depends(get_order_service)],
    request: Request,
) -> ApiResponse:
    data = await service.list_available_jobs(db, identity)
    return _wrap(request, [j.model_dump() for j in data])


@router.get("/public/recent")
async def list_public_recent(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OrderApplicationService, Depends(get_order_service)],
    request: Request,
    limit: int = Query(5, ge=1, le=PUBLIC_RECENT_MAX_LIMIT, description="Max orders returned"),
) -> ApiResponse:
    data = await service.list_public_recent(db, limit)
    return _wrap(request, data.model_dump())


@router.get("/stats")
async def get_stats(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OrderApplicationService, Depends(get_order_service)],
    request: Request,
) -> ApiResponse:
    data = await service.get_stats(db)
    return _wrap(request, data.model_dump())


@router.get("/admin")
async def admin_list_orders(
    _admin: Annotated[Identity, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OrderApplicationService, Depends(get_order_service)],
    request: Request,
    status: str | None = Query(None, description="Filter by order status"),
    limit: int = Query(50, ge=1, le=200, description="Items per page"),
    offset: int = Query(0, ge=0, description="Items to skip"),
) -> ApiResponse:
    data = await service.admin_list_orders(db, status, limit, offset)
    return _wrap(request, data.model_dump())


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    _identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OrderApplicationService, Depends(get_order_service)],
    request: Request,
) -> ApiResponse:
    data = await service.get_order(db, order_id)
    return _wrap(request, data.model_dump())


@router.post("/{order_id}/postulations", status_code=201)
async def submit_postulation(
    order_id: str,
    body: SubmitPostulationRequest,
    identity: Annotated[ProviderIdentity, Depends(require_provider)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OrderApplicationService, Depends(get_order_service)],
    request: Request,
) -> ApiResponse:
    data = await service.submit_postulation(db, identity, order_id, body)
    return _wrap(request, data.model_dump())


@router.post("/{order_id}/accept")
async def accept_postulation(
    order_id: str,
    body: AcceptPostulationRequest,
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[OrderApplicationService, Depends(get_order_service)],
    request: Request,
) -> ApiResponse:
    data = await service.accept_postulation(db, identity, order_id, body.postulation_id)
    return _wrap(request, data.model_dump())
