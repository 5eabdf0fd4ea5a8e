import pytest

from app.stockflow.domain.transfer import (
    ALLOWED_TRANSITIONS,
    CANCELLABLE_STATUSES,
    TERMINAL_STATUSES,
    TransferStatus,
    can_transition,
)


def test_every_status_has_an_entry_in_the_graph():
    assert set(ALLOWED_TRANSITIONS) == set(TransferStatus)


@pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda item: item.value))
def test_terminal_statuses_have_no_outgoing_edges(status):
    assert ALLOWED_TRANSITIONS[status] == frozenset()


def test_draft_and_submitted_are_never_revisited():
    for source, targets in ALLOWED_TRANSITIONS.items():
        assert TransferStatus.DRAFT not in targets
        if source != TransferStatus.DRAFT:
            assert TransferStatus.SUBMITTED not in targets


def test_partially_received_may_loop_on_itself():
    assert can_transition(TransferStatus.PARTIALLY_RECEIVED, TransferStatus.PARTIALLY_RECEIVED)
    assert not can_transition(TransferStatus.IN_TRANSIT, TransferStatus.IN_TRANSIT)


def test_cancellable_statuses_match_cancel_edges():
    cancellable = {status for status, targets in ALLOWED_TRANSITIONS.items() if TransferStatus.CANCELLED in targets}
    assert cancellable == set(CANCELLABLE_STATUSES)


def test_can_transition_accepts_plain_strings():
    assert can_transition("SUBMITTED", "PARTIALLY_APPROVED")
    assert not can_transition("APPROVED", "RECEIVED")
