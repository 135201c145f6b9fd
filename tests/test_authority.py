# tests/test_authority.py
import pytest

from sarpras.core import authority
from sarpras.core.errors import AuthError, InvalidTransitionError, ValidationError
from sarpras.models.enum import (
    UserRole, RequestType,
    ConsumableRequestStatus as CS, BorrowRequestStatus as BS, ReturnRequestStatus as RS,
)

ADMIN = UserRole.ADMIN
HEADMASTER = UserRole.HEADMASTER
USER = UserRole.USER


@pytest.mark.parametrize(
    "role, request_type, status, expected",
    [
        # Consumable
        (HEADMASTER, RequestType.CONSUMABLE, CS.PENDING, {CS.APPROVED_BY_HEADMASTER, CS.REJECTED}),
        (ADMIN, RequestType.CONSUMABLE, CS.PENDING, set()),
        (ADMIN, RequestType.CONSUMABLE, CS.APPROVED_BY_HEADMASTER, {CS.APPROVED, CS.REJECTED}),
        (HEADMASTER, RequestType.CONSUMABLE, CS.APPROVED_BY_HEADMASTER, set()),
        (ADMIN, RequestType.CONSUMABLE, CS.APPROVED, set()),
        (ADMIN, RequestType.CONSUMABLE, CS.REJECTED, set()),
        # Borrow
        (HEADMASTER, RequestType.BORROW, BS.PENDING, {BS.DISETUJUI, BS.DITOLAK}),
        (ADMIN, RequestType.BORROW, BS.PENDING, set()),
        (ADMIN, RequestType.BORROW, BS.DISETUJUI, {BS.DIPROSES, BS.DITOLAK}),
        (HEADMASTER, RequestType.BORROW, BS.DISETUJUI, set()),
        (ADMIN, RequestType.BORROW, BS.DIPROSES, {BS.DIKEMBALIKAN}),
        (HEADMASTER, RequestType.BORROW, BS.DIPROSES, set()),
        (ADMIN, RequestType.BORROW, BS.DIKEMBALIKAN, set()),
        (ADMIN, RequestType.BORROW, BS.DITOLAK, set()),
        # Return
        (ADMIN, RequestType.RETURN, RS.PENDING, {RS.DISETUJUI, RS.DITOLAK}),
        (HEADMASTER, RequestType.RETURN, RS.PENDING, set()),
        (ADMIN, RequestType.RETURN, RS.DISETUJUI, set()),
    ],
)
def test_permitted_transitions(role, request_type, status, expected):
    assert authority.permitted_transitions(role, request_type, status) == expected


@pytest.mark.parametrize("request_type", list(RequestType))
def test_pengguna_never_has_transitions(request_type):
    for status in authority.status_enum(request_type):
        assert authority.permitted_transitions(USER, request_type, status) == set()


@pytest.mark.parametrize("request_type", list(RequestType))
def test_terminal_states_have_no_successors(request_type):
    for status in authority.status_enum(request_type):
        if authority.is_terminal(request_type, status):
            assert authority.successors(request_type, status) == set()
            for role in UserRole:
                assert authority.permitted_transitions(role, request_type, status) == set()


def test_only_handover_processing_and_returns_touch_stock():
    stock_edges = {
        (rt, e.action, e.stock_effect)
        for rt, edges in authority.TRANSITIONS.items()
        for e in edges
        if e.touches_stock
    }
    assert stock_edges == {
        (RequestType.CONSUMABLE, "admin_process", authority.DEBIT),
        (RequestType.BORROW, "admin_handover", authority.DEBIT),
        (RequestType.BORROW, "admin_receive_return", authority.CREDIT),
        (RequestType.RETURN, "approve", authority.CREDIT),
    }


def test_headmaster_approval_does_not_touch_stock():
    edge = authority.authorize_transition(HEADMASTER, RequestType.CONSUMABLE, CS.PENDING, CS.APPROVED_BY_HEADMASTER)
    assert not edge.touches_stock


def test_authorize_returns_edge_for_allowed_transition():
    edge = authority.authorize_transition(ADMIN, RequestType.BORROW, BS.DISETUJUI, BS.DIPROSES)
    assert edge.action == "admin_handover"
    assert edge.stock_effect == authority.DEBIT


def test_authorize_rejects_role_without_any_authority_first():
    # Pengguna tidak punya otoritas sama sekali: AuthError walaupun target juga tidak sah
    with pytest.raises(AuthError):
        authority.authorize_transition(USER, RequestType.CONSUMABLE, CS.REJECTED, CS.APPROVED)


def test_authorize_rejects_non_successor():
    with pytest.raises(InvalidTransitionError) as exc_info:
        authority.authorize_transition(ADMIN, RequestType.CONSUMABLE, CS.REJECTED, CS.APPROVED)
    assert exc_info.value.current_status == "Rejected"


def test_authorize_rejects_wrong_role_on_valid_edge():
    with pytest.raises(AuthError):
        authority.authorize_transition(ADMIN, RequestType.BORROW, BS.PENDING, BS.DISETUJUI)
    with pytest.raises(AuthError):
        authority.authorize_transition(HEADMASTER, RequestType.BORROW, BS.DISETUJUI, BS.DIPROSES)


def test_headmaster_cannot_touch_return_requests():
    with pytest.raises(AuthError):
        authority.authorize_transition(HEADMASTER, RequestType.RETURN, RS.PENDING, RS.DISETUJUI)


def test_repeated_approval_is_invalid_transition():
    with pytest.raises(InvalidTransitionError):
        authority.authorize_transition(ADMIN, RequestType.CONSUMABLE, CS.APPROVED, CS.APPROVED)


def test_parse_status_accepts_values_and_rejects_unknown():
    assert authority.parse_status(RequestType.BORROW, "Diproses") is BS.DIPROSES
    assert authority.parse_status(RequestType.BORROW, BS.DITOLAK) is BS.DITOLAK
    with pytest.raises(ValidationError):
        authority.parse_status(RequestType.BORROW, "Approved")


def test_initial_status_is_pending_for_every_type():
    for request_type in RequestType:
        assert authority.initial_status(request_type).value == "Pending"


def test_non_terminal_statuses():
    assert authority.non_terminal_statuses(RequestType.BORROW) == {BS.PENDING, BS.DISETUJUI, BS.DIPROSES}
    assert authority.non_terminal_statuses(RequestType.RETURN) == {RS.PENDING}
