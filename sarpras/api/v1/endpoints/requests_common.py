# sarpras/api/v1/endpoints/requests_common.py
"""Helper bersama untuk router consumable/borrow/return request."""
from typing import List, Optional

from pydantic import BaseModel, Field

from sarpras.core import audit, authority
from sarpras.core.authority import Actor
from sarpras.core.errors import NotFoundError
from sarpras.core.workflow import MODELS, REVIEWER_ROLES, RequestWorkflow
from sarpras.models.enum import RequestType
from sarpras.models.transition_log import TransitionLog


class TransitionIn(BaseModel):
    target_status: str = Field(..., description="Status tujuan, misal 'Disetujui' atau 'Approved'")
    notes: Optional[str] = Field(None, max_length=1000)


class PermittedTransitionsOut(BaseModel):
    current_status: str
    permitted_transitions: List[str]


def request_type_of(request) -> RequestType:
    for request_type, model in MODELS.items():
        if isinstance(request, model):
            return request_type
    raise TypeError(f"Not a request document: {type(request).__name__}")


def render(request, actor: Actor):
    """Response model + transisi yang boleh dilakukan role pemanggil."""
    permitted = authority.permitted_transitions(actor.role, request_type_of(request), request.status)
    return request.to_response(permitted)


async def read_visible_request(workflow: RequestWorkflow, request_type: RequestType, request_id: str, actor: Actor):
    # Pengguna hanya boleh melihat miliknya sendiri; selain itu dianggap tidak ada
    request = await workflow.get_request(request_type, request_id)
    if actor.role not in REVIEWER_ROLES and request.requester_id != actor.id:
        raise NotFoundError(f"{request_type.value.capitalize()} request '{request_id}' not found.")
    return request


async def permitted_out(workflow: RequestWorkflow, request_type: RequestType, request_id: str, actor: Actor) -> PermittedTransitionsOut:
    request = await read_visible_request(workflow, request_type, request_id, actor)
    permitted = await workflow.list_permitted_transitions(actor.role, request_type, request.id)
    return PermittedTransitionsOut(
        current_status=request.status.value,
        permitted_transitions=sorted(s.value for s in permitted),
    )


async def history_out(workflow: RequestWorkflow, request_type: RequestType, request_id: str) -> List[TransitionLog.Response]:
    request = await workflow.get_request(request_type, request_id)
    logs = await audit.request_history(request_type, request.id)
    return [log.to_response() for log in logs]
