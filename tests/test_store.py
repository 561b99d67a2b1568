import logging

import pytest
from sqlalchemy.exc import IntegrityError

from stackwise.errors import NotFoundError, NotOccupiedError, SlotOccupiedError
from stackwise.extensions import db
from stackwise.models.container import Container
from stackwise.models.yard import Block, Slot
from stackwise.services.store import get_store, transaction


@pytest.fixture
def store(app):
    return get_store()


def _container(store, number):
    c = store.insert_container(Container(container_number=number, consignee_name="Acme"))
    db.session.commit()
    return c


def test_get_slots_for_block_is_ordered_and_complete(store, make_block):
    block = make_block(bays=2, rows=3, tiers=2)
    slots = store.get_slots_for_block(block.id)

    assert [s.coordinate for s in slots] == [
        (b, r, t) for b in range(1, 3) for r in range(1, 4) for t in range(1, 3)
    ]
    assert store.count_slots(block.id) == 12
    assert store.count_slots(block.id, occupied=False) == 12
    assert store.count_slots(block.id, occupied=True) == 0


def test_update_slot_binds_only_empty_slot(store, make_block):
    block = make_block()
    slot = store.get_slots_for_block(block.id)[0]
    a = _container(store, "AAAU0000001")
    b = _container(store, "BBBU0000001")

    updated = store.update_slot(slot.id, a.id)
    db.session.commit()
    assert updated.container_id == a.id

    with pytest.raises(SlotOccupiedError):
        store.update_slot(slot.id, b.id)
    db.session.rollback()

    assert store.get_slot(slot.id).container_id == a.id


def test_update_slot_clear_guard(store, make_block):
    block = make_block()
    slot = store.get_slots_for_block(block.id)[0]
    a = _container(store, "AAAU0000001")
    b = _container(store, "BBBU0000001")

    with pytest.raises(NotOccupiedError):
        store.update_slot(slot.id, None, expected_container_id=a.id)

    store.update_slot(slot.id, a.id)
    db.session.commit()

    # stale caller believes b is there
    with pytest.raises(SlotOccupiedError):
        store.update_slot(slot.id, None, expected_container_id=b.id)

    cleared = store.update_slot(slot.id, None, expected_container_id=a.id)
    assert cleared.container_id is None


def test_update_slot_unknown_slot(store):
    with pytest.raises(NotFoundError):
        store.update_slot(12345, None, expected_container_id=1)


def test_unique_container_constraint_maps_to_slot_occupied(store, make_block):
    block = make_block()
    first, second = store.get_slots_for_block(block.id)[:2]
    a = _container(store, "AAAU0000001")

    store.update_slot(first.id, a.id)
    db.session.commit()

    with pytest.raises(SlotOccupiedError):
        store.update_slot(second.id, a.id)
    db.session.rollback()


def test_occupancy_by_block(store, make_block, place):
    a = make_block("A")
    b = make_block("B", bays=1, rows=1, tiers=3)
    place(b.id)

    counts = store.occupancy_by_block()
    assert counts[a.id] == (8, 0)
    assert counts[b.id] == (3, 1)


def test_transaction_rolls_back_and_logs_store_errors(store, caplog):
    db.session.add(Block(block_name="X", bays=1, rows=1, tiers=1, capacity=1))
    db.session.commit()

    with caplog.at_level(logging.ERROR, logger="stackwise.services.store"):
        with pytest.raises(IntegrityError):
            with transaction():
                db.session.add(Block(block_name="Y", bays=1, rows=1, tiers=1, capacity=1))
                db.session.add(Block(block_name="X", bays=1, rows=1, tiers=1, capacity=1))
                db.session.flush()

    assert "rolled back" in caplog.text
    assert [b.block_name for b in Block.query.all()] == ["X"]


def test_transaction_rolls_back_domain_errors_without_logging(store, caplog):
    with caplog.at_level(logging.ERROR, logger="stackwise.services.store"):
        with pytest.raises(NotFoundError):
            with transaction():
                db.session.add(Block(block_name="Z", bays=1, rows=1, tiers=1, capacity=1))
                db.session.flush()
                store.get_block(999)

    assert caplog.text == ""
    assert Block.query.count() == 0
    assert Slot.query.count() == 0
