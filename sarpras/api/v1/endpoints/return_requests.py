# sarpras/api/v1/endpoints/return_requests.py
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from sarpras.api.v1.endpoints.requests_common import (
    TransitionIn, PermittedTransitionsOut, render, read_visible_request, permitted_out, history_out,
)
from sarpras.core.authority import Actor
from sarpras.core.security import get_current_actor, require_reviewer
from sarpras.core.workflow import RequestWorkflow, get_workflow
from sarpras.models.enum import RequestType
from sarpras.models.return_request import ReturnRequest
from sarpras.models.transition_log import TransitionLog

router = APIRouter(tags=["Return Requests"])

REQUEST_TYPE = RequestType.RETURN


@router.post("/", response_model=ReturnRequest.Response, status_code=status.HTTP_201_CREATED)
async def create_return_request(
    request_in: ReturnRequest.Create = Body(...),
    actor: Actor = Depends(get_current_actor),
    workflow: RequestWorkflow = Depends(get_workflow),
):
    """Ajukan pengembalian sebagian atau seluruh unit dari peminjaman yang sedang berjalan."""
    request = await workflow.create_request(
        REQUEST_TYPE, actor,
        borrow_request_id=request_in.borrow_request_id,
        item_id=request_in.item_id,
        quantity=request_in.quantity,
        requester_id=request_in.requester_id,
        condition_description=request_in.condition_description,
    )
    return render(request, actor)


@router.get("/", response_model=List[ReturnRequest.Response])
async def list_return_requests(
    status_filter: Optional[List[str]] = Query(None, alias="status"),
    item_id: Optional[str] = Query(None),
    requester_id: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_current_actor),
    workflow: RequestWorkflow = Depends(get_workflow),
):
    requests = await workflow.list_requests(
        REQUEST_TYPE, actor, statuses=status_filter, item_id=item_id,
        requester_id=requester_id, skip=skip, limit=limit,
    )
    return [render(r, actor) for r in requests]


@router.get("/{request_id}", response_model=ReturnRequest.Response)
async def read_return_request(
    request_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    workflow: RequestWorkflow = Depends(get_workflow),
):
    request = await read_visible_request(workflow, REQUEST_TYPE, request_id, actor)
    return render(request, actor)


@router.get("/{request_id}/transitions", response_model=PermittedTransitionsOut)
async def return_request_transitions(
    request_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    workflow: RequestWorkflow = Depends(get_workflow),
):
    return await permitted_out(workflow, REQUEST_TYPE, request_id, actor)


@router.post("/{request_id}/transition", response_model=ReturnRequest.Response)
async def transition_return_request(
    request_id: str = Path(...),
    transition_in: TransitionIn = Body(...),
    actor: Actor = Depends(get_current_actor),
    workflow: RequestWorkflow = Depends(get_workflow),
):
    request = await workflow.transition(
        REQUEST_TYPE, request_id, actor, transition_in.target_status, transition_in.notes
    )
    return render(request, actor)


@router.get(
    "/{request_id}/history",
    response_model=List[TransitionLog.Response],
    dependencies=[Depends(require_reviewer)],
)
async def return_request_history(
    request_id: str = Path(...),
    workflow: RequestWorkflow = Depends(get_workflow),
):
    return await history_out(workflow, REQUEST_TYPE, request_id)
