"""Tests for trade execution and conflict voiding.

Tests that executing a trade:
- Voids every other trade sharing a unit, whatever its status
- Leaves unrelated trades open
- Keeps the ownership index and the nested schedule in agreement
- Writes nothing when the stored index is corrupt
"""

import copy

import pytest

from shiftswap.core.errors import ConsistencyError, InvalidRequestError
from shiftswap.db.models import LedgerTrade, MasterSchedule
from shiftswap.db.session import get_session
from shiftswap.schedules.service import get_active_master_schedule
from shiftswap.trades.executor import reassign_ownership
from shiftswap.trades.service import finalize_trade, list_trade_ledger, propose_trade
from shiftswap.trades.types import Trade, TradeAction, TradeRequest, TradeStatus

from factories import ALICE, BOB, CAROL, U1, U2, U3, U4, U5, U6, UNKNOWN_UNIT


def _propose(schedule_id, user_id, initiator, executor, initiator_units, executor_units):
    request = TradeRequest(
        schedule_id=schedule_id,
        initiator_email=initiator,
        executor_email=executor,
        initiator_units=initiator_units,
        executor_units=executor_units,
    )
    return propose_trade(request, user_id)


def _statuses(schedule_id):
    return {trade.id: trade.status for trade in list_trade_ledger(schedule_id)}


def _assert_index_matches_schedule(schedule_id):
    with get_session() as db:
        record = db.get(MasterSchedule, schedule_id)
        for unit_id, entry in record.unit_index.items():
            i, j, k = entry["coordinates"]
            unit = record.schedule["seasons"][i]["blocks"][j]["units"][k]
            assert unit["id"] == unit_id
            assert unit["participant"] == entry["owner"]


def test_execution_voids_overlapping_trades_only(schedule_id, members):
    a = _propose(schedule_id, members.alice_id, ALICE, BOB, [U1], [U2])
    b = _propose(schedule_id, members.alice_id, ALICE, BOB, [U1, U3], [U4])
    c = _propose(schedule_id, members.bob_id, BOB, CAROL, [U6], [U5])

    finalize_trade(a.id, schedule_id, members.bob_id, TradeAction.ACCEPT)

    statuses = _statuses(schedule_id)
    assert statuses[a.id] == TradeStatus.EXECUTED
    assert statuses[b.id] == TradeStatus.VOID
    assert statuses[c.id] == TradeStatus.OPEN


def test_overlap_on_executor_side_is_a_conflict(schedule_id, members):
    a = _propose(schedule_id, members.alice_id, ALICE, BOB, [U1], [U2])
    b = _propose(schedule_id, members.alice_id, ALICE, BOB, [U3], [U2, U4])

    finalize_trade(a.id, schedule_id, members.bob_id, TradeAction.ACCEPT)

    assert _statuses(schedule_id)[b.id] == TradeStatus.VOID


def test_voided_trade_cannot_be_accepted(schedule_id, members):
    a = _propose(schedule_id, members.alice_id, ALICE, BOB, [U1], [U2])
    b = _propose(schedule_id, members.alice_id, ALICE, BOB, [U1], [U4])
    finalize_trade(a.id, schedule_id, members.bob_id, TradeAction.ACCEPT)

    with pytest.raises(InvalidRequestError, match="trade is void or cancelled"):
        finalize_trade(b.id, schedule_id, members.bob_id, TradeAction.ACCEPT)

    snapshot = get_active_master_schedule(members.group_id)
    assert snapshot.owner_of(U4) == BOB


def test_voiding_overwrites_terminal_status(schedule_id, members):
    a = _propose(schedule_id, members.alice_id, ALICE, BOB, [U1], [U2])
    b = _propose(schedule_id, members.alice_id, ALICE, BOB, [U1], [U4])
    finalize_trade(b.id, schedule_id, members.alice_id, TradeAction.DECLINE)
    assert _statuses(schedule_id)[b.id] == TradeStatus.CANCELLED

    finalize_trade(a.id, schedule_id, members.bob_id, TradeAction.ACCEPT)

    assert _statuses(schedule_id)[b.id] == TradeStatus.VOID


def test_index_and_schedule_agree_after_executions(schedule_id, members):
    a = _propose(schedule_id, members.alice_id, ALICE, BOB, [U1, U3], [U2])
    finalize_trade(a.id, schedule_id, members.bob_id, TradeAction.ACCEPT)
    b = _propose(schedule_id, members.bob_id, BOB, CAROL, [U1], [U5])
    finalize_trade(b.id, schedule_id, members.carol_id, TradeAction.ACCEPT)

    snapshot = get_active_master_schedule(members.group_id)
    assert snapshot.owner_of(U1) == CAROL
    assert snapshot.owner_of(U2) == ALICE
    assert snapshot.owner_of(U3) == BOB
    assert snapshot.owner_of(U5) == BOB
    _assert_index_matches_schedule(schedule_id)


def test_corrupt_coordinates_roll_back_everything(schedule_id, members):
    a = _propose(schedule_id, members.alice_id, ALICE, BOB, [U1], [U2])
    b = _propose(schedule_id, members.alice_id, ALICE, BOB, [U1], [U4])
    with get_session() as db:
        record = db.get(MasterSchedule, schedule_id)
        index = copy.deepcopy(record.unit_index)
        index[U2]["coordinates"] = [0, 0]
        record.unit_index = index

    with pytest.raises(ConsistencyError, match="schedule map unit indices corrupt"):
        finalize_trade(a.id, schedule_id, members.bob_id, TradeAction.ACCEPT)

    statuses = _statuses(schedule_id)
    assert statuses[a.id] == TradeStatus.OPEN
    assert statuses[b.id] == TradeStatus.OPEN
    with get_session() as db:
        record = db.get(MasterSchedule, schedule_id)
        assert record.unit_index[U1]["owner"] == ALICE
        assert record.schedule["seasons"][0]["blocks"][0]["units"][0]["participant"] == ALICE


def test_unindexed_units_are_skipped_when_lenient(schedule_id, members, lenient_units):
    a = _propose(schedule_id, members.alice_id, ALICE, BOB, [U1, UNKNOWN_UNIT], [U2])
    b = _propose(schedule_id, members.alice_id, ALICE, BOB, [UNKNOWN_UNIT], [U4])

    finalize_trade(a.id, schedule_id, members.bob_id, TradeAction.ACCEPT)

    statuses = _statuses(schedule_id)
    assert statuses[a.id] == TradeStatus.EXECUTED
    assert statuses[b.id] == TradeStatus.VOID
    snapshot = get_active_master_schedule(members.group_id)
    assert snapshot.owner_of(U1) == BOB
    assert UNKNOWN_UNIT not in snapshot.unit_index


def test_reassign_ownership_does_not_mutate_inputs():
    schedule_doc = {"seasons": [{"blocks": [{"units": [{"id": U1, "participant": ALICE}, {"id": U2, "participant": BOB}]}]}]}
    index_doc = {
        U1: {"owner": ALICE, "start": "2026-01-05T09:00:00Z", "coordinates": [0, 0, 0]},
        U2: {"owner": BOB, "start": "2026-01-06T09:00:00Z", "coordinates": [0, 0, 1]},
    }
    original_schedule = copy.deepcopy(schedule_doc)
    original_index = copy.deepcopy(index_doc)
    trade = Trade(initiator_email=ALICE, executor_email=BOB, initiator_units=[U1], executor_units=[U2])

    new_schedule, new_index, result = reassign_ownership(schedule_doc, index_doc, trade)

    assert schedule_doc == original_schedule
    assert index_doc == original_index
    assert new_index[U1]["owner"] == BOB
    assert new_index[U2]["owner"] == ALICE
    assert new_schedule["seasons"][0]["blocks"][0]["units"][0]["participant"] == BOB
    assert result.reassigned_units == {U1: BOB, U2: ALICE}


def test_reassign_ownership_rejects_mismatched_coordinates():
    schedule_doc = {"seasons": [{"blocks": [{"units": [{"id": U1, "participant": ALICE}, {"id": U2, "participant": BOB}]}]}]}
    index_doc = {
        U1: {"owner": ALICE, "start": "2026-01-05T09:00:00Z", "coordinates": [0, 0, 1]},
        U2: {"owner": BOB, "start": "2026-01-06T09:00:00Z", "coordinates": [0, 0, 1]},
    }
    trade = Trade(initiator_email=ALICE, executor_email=BOB, initiator_units=[U1], executor_units=[U2])

    with pytest.raises(ConsistencyError):
        reassign_ownership(schedule_doc, index_doc, trade)


def test_reassign_ownership_rejects_unindexed_unit_in_strict_mode():
    trade = Trade(initiator_email=ALICE, executor_email=BOB, initiator_units=[UNKNOWN_UNIT], executor_units=[U2])

    with pytest.raises(ConsistencyError):
        reassign_ownership({"seasons": []}, {}, trade)


def test_ledger_rows_keep_their_positions(schedule_id, members):
    a = _propose(schedule_id, members.alice_id, ALICE, BOB, [U1], [U2])
    b = _propose(schedule_id, members.alice_id, ALICE, BOB, [U1], [U4])
    finalize_trade(a.id, schedule_id, members.bob_id, TradeAction.ACCEPT)

    with get_session() as db:
        positions = {row.id: row.ledger_position for row in db.query(LedgerTrade).all()}

    assert positions == {a.id: 0, b.id: 1}
