"""Work publishing API endpoints.

- POST /api/works/{work_id}/publish - Publish a draft work and request its NFT mint
- GET /api/works/{work_id} - Read a work's publish/mint status
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from storymint.api.dependencies import get_caller, get_uow_factory
from storymint.core.dependencies import get_uow
from storymint.services.exceptions import PublishError
from storymint.services.publishing import Caller, publish_work
from storymint.uow import UnitOfWork

logger = structlog.get_logger()
router = APIRouter(prefix="/api/works", tags=["works"])

ERROR_STATUS_CODES = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "unauthorized": status.HTTP_401_UNAUTHORIZED,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "conflict": status.HTTP_409_CONFLICT,
}


class PublishResponse(BaseModel):
    """Response model for a successful publish."""

    success: bool = Field(default=True)
    work_id: UUID = Field(..., description="Published work")


class WorkStatusResponse(BaseModel):
    """Publish/mint state of a work. Only reflects committed saga outcomes."""

    work_id: UUID
    status: str = Field(..., description="Work status (draft, publishing, minted, failed)")
    nft_token_id: str | None = Field(
        default=None, description="Minted token id (uint256 as a decimal string)"
    )
    nft_tx_hash: str | None = Field(default=None, description="Mint transaction hash")


@router.post("/{work_id}/publish", response_model=PublishResponse)
async def publish(
    work_id: str,
    caller: Caller | None = Depends(get_caller),
    uow_factory=Depends(get_uow_factory),
):
    """Publish a draft work.

    Returns:
        PublishResponse on success; {"success": false, "error": kind, "detail": msg}
        with 400/401/403/404/409 otherwise
    """
    try:
        result = await publish_work(uow_factory, work_id, caller)
    except PublishError as e:
        logger.info("works.publish_rejected", work_id=work_id, kind=e.kind, detail=str(e))
        return JSONResponse(
            status_code=ERROR_STATUS_CODES.get(e.kind, status.HTTP_400_BAD_REQUEST),
            content={"success": False, "error": e.kind, "detail": str(e)},
        )

    return PublishResponse(work_id=result.work_id)


@router.get("/{work_id}", response_model=WorkStatusResponse)
async def get_work_status(work_id: UUID, uow: UnitOfWork = Depends(get_uow)):
    """Read a work's status, token id and mint transaction hash."""
    work = await uow.works.get_by_id(work_id)

    if work is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Work not found")

    return WorkStatusResponse(
        work_id=work.id,
        status=work.status.value,
        nft_token_id=None if work.nft_token_id is None else str(work.nft_token_id),
        nft_tx_hash=work.nft_tx_hash,
    )
