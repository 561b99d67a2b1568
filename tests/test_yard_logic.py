import pytest

from stackwise import signals
from stackwise.errors import (
    NoCapacityError,
    NotFoundError,
    NotOccupiedError,
    SlotOccupiedError,
    ValidationError,
)
from stackwise.extensions import db
from stackwise.models.container import Container
from stackwise.models.history import ContainerHistory
from stackwise.models.yard import Block, Slot
from stackwise.services import yard_logic
from stackwise.services.store import get_store


def _slot_at(block_id, bay, row, tier):
    return Slot.query.filter_by(block_id=block_id, bay=bay, row=row, tier=tier).one()


def _new_container(number="TGHU0000001"):
    c = Container(container_number=number, consignee_name="Acme", holding_area="none")
    get_store().insert_container(c)
    db.session.commit()
    return c


# =========================
# create_block
# =========================

def test_create_block_creates_full_cross_product_of_slots(make_block):
    block = make_block("A1", bays=3, rows=2, tiers=4)

    slots = get_store().get_slots_for_block(block.id)
    assert block.capacity == 24
    assert len(slots) == 24
    coords = [s.coordinate for s in slots]
    assert len(set(coords)) == 24
    assert set(coords) == {(b, r, t) for b in range(1, 4) for r in range(1, 3) for t in range(1, 5)}
    # ordered bay, row, tier
    assert coords == sorted(coords)
    assert all(s.container_id is None for s in slots)


def test_create_block_defaults_to_four_tiers(app):
    block = yard_logic.create_block("B", 1, 1)
    assert block.tiers == 4
    assert block.capacity == 4


def test_create_block_reports_all_violations_at_once(app):
    with pytest.raises(ValidationError) as exc:
        yard_logic.create_block("   ", 0, -1, tiers=0, block_type="frozen")

    assert exc.value.errors == [
        "Block name is required",
        "Number of bays must be greater than 0",
        "Number of rows must be greater than 0",
        "Block type must be one of: regular, reefer, hazardous, empty",
        "Number of tiers must be greater than 0",
    ]
    assert Block.query.count() == 0
    assert Slot.query.count() == 0


def test_create_block_rejects_long_and_duplicate_names(make_block):
    with pytest.raises(ValidationError) as exc:
        yard_logic.create_block("ABCDEFGHIJK", 1, 1)
    assert exc.value.errors == ["Block name must be 10 characters or less"]

    make_block("D")
    with pytest.raises(ValidationError) as exc:
        yard_logic.create_block("d", 1, 1)
    assert "Block name already exists" in exc.value.errors


def test_create_block_rejects_non_numeric_dimensions(app):
    with pytest.raises(ValidationError) as exc:
        yard_logic.create_block("X", "abc", None, tiers=True)
    assert "Number of bays must be greater than 0" in exc.value.errors
    assert "Number of rows must be greater than 0" in exc.value.errors
    assert "Number of tiers must be greater than 0" in exc.value.errors


def test_create_block_accepts_numeric_strings(app):
    block = yard_logic.create_block("S", "2", "3", tiers="1", block_type="reefer")
    assert (block.bays, block.rows, block.tiers, block.type) == (2, 3, 1, "reefer")
    assert get_store().count_slots(block.id) == 6


def test_create_block_rejects_fractional_dimensions(app):
    with pytest.raises(ValidationError) as exc:
        yard_logic.create_block("F", 2.7, 2, tiers=0.5)
    assert exc.value.errors == [
        "Number of bays must be greater than 0",
        "Number of tiers must be greater than 0",
    ]
    assert Block.query.count() == 0

    block = yard_logic.create_block("F", 2.0, 2, tiers=1)
    assert (block.bays, block.capacity) == (2, 4)


# =========================
# utilization
# =========================

def test_fresh_block_has_zero_utilization(make_block):
    block = make_block()
    u = yard_logic.compute_utilization(block.id)
    assert (u.total_slots, u.occupied_slots, u.utilization_percentage) == (8, 0, 0)


@pytest.mark.parametrize(
    "occupied,total,expected",
    [(0, 0, 0), (0, 8, 0), (7, 8, 88), (1, 3, 33), (2, 3, 67), (1, 8, 13), (8, 8, 100)],
)
def test_utilization_percentage_rounds_half_up(occupied, total, expected):
    assert yard_logic.utilization_percentage(occupied, total) == expected


def test_compute_utilization_unknown_block(app):
    with pytest.raises(NotFoundError):
        yard_logic.compute_utilization(999)


# =========================
# placement
# =========================

def test_next_available_slot_follows_bay_row_tier_order(make_block, place):
    block = make_block()
    expected = [(b, r, t) for b in (1, 2) for r in (1, 2) for t in (1, 2)]

    seen = []
    for coord in expected:
        slot = yard_logic.find_next_available_slot(block.id)
        assert slot.coordinate == coord
        assert slot.id not in seen
        seen.append(slot.id)
        _, placed = place(block.id)
        assert placed.id == slot.id

    assert yard_logic.find_next_available_slot(block.id) is None


def test_full_block_scenario(make_block, place):
    block = make_block("D", bays=2, rows=2, tiers=2)

    placed = [place(block.id) for _ in range(8)]
    assert yard_logic.compute_utilization(block.id).utilization_percentage == 100

    with pytest.raises(NoCapacityError):
        place(block.id)
    # the failed placement left no orphan container behind
    assert Container.query.count() == 8

    _, freed = placed[3]
    yard_logic.remove_container(freed.id)

    u = yard_logic.compute_utilization(block.id)
    assert (u.occupied_slots, u.total_slots, u.utilization_percentage) == (7, 8, 88)
    assert yard_logic.find_next_available_slot(block.id).id == freed.id


def test_place_container_sets_yard_area_and_history(make_block, place):
    block = make_block()
    container, slot = place(block.id, container_number="abcu1234567", status="loaded")

    assert container.container_number == "ABCU1234567"
    assert container.holding_area == "yard"
    assert container.status == "loaded"
    assert slot.container_id == container.id

    actions = [h.action for h in ContainerHistory.query.order_by(ContainerHistory.id).all()]
    assert actions == ["created", "moved"]
    moved = ContainerHistory.query.filter_by(action="moved").one()
    assert moved.new_location == "D-B1-R1-T1"


def test_place_container_requires_number_and_consignee(make_block):
    block = make_block()
    with pytest.raises(ValidationError) as exc:
        yard_logic.place_container(block.id, {"container_number": " ", "consignee_name": ""})
    assert exc.value.errors == ["Container number is required", "Consignee name is required"]
    assert Container.query.count() == 0


def test_place_container_rejects_duplicate_number(make_block, place):
    block = make_block()
    place(block.id, container_number="DUPL0000001")
    with pytest.raises(ValidationError) as exc:
        place(block.id, container_number="dupl0000001")
    assert exc.value.errors == ["Container DUPL0000001 already exists"]


def test_place_container_rejects_non_text_fields(make_block):
    block = make_block()
    with pytest.raises(ValidationError) as exc:
        yard_logic.place_container(block.id, {"container_number": 12345, "consignee_name": ["Acme"]})
    assert exc.value.errors == ["Container number must be text", "Consignee name must be text"]
    assert Container.query.count() == 0


def test_place_container_duplicate_lost_race_is_validation_error(make_block, place, monkeypatch):
    block = make_block()
    place(block.id, container_number="RACE0000001")
    store_cls = type(get_store())
    # the pre-check misses a row committed by a concurrent request
    monkeypatch.setattr(store_cls, "get_container_by_number", lambda self, number: None)

    with pytest.raises(ValidationError) as exc:
        place(block.id, container_number="RACE0000001")
    assert exc.value.errors == ["Container RACE0000001 already exists"]
    assert Container.query.count() == 1
    assert get_store().count_slots(block.id, occupied=True) == 1


def test_place_container_unknown_block(app):
    with pytest.raises(NotFoundError):
        yard_logic.place_container(42, {"container_number": "X1", "consignee_name": "Y"})
    assert Container.query.count() == 0


def test_place_container_retries_when_slot_is_taken_concurrently(make_block, monkeypatch):
    block = make_block(bays=1, rows=1, tiers=2)
    store_cls = type(get_store())
    original = store_cls.update_slot
    calls = {"n": 0}

    def flaky(self, slot_id, container_id, expected_container_id=None):
        calls["n"] += 1
        if calls["n"] == 1:
            # another client grabbed the slot first
            raise SlotOccupiedError(slot_id)
        return original(self, slot_id, container_id, expected_container_id)

    monkeypatch.setattr(store_cls, "update_slot", flaky)

    container, slot = yard_logic.place_container(block.id, {"container_number": "RACE0000001", "consignee_name": "Acme"})
    assert calls["n"] == 2
    assert slot.container_id == container.id


def test_place_container_rolls_back_when_bind_keeps_failing(make_block, monkeypatch):
    block = make_block(bays=1, rows=1, tiers=1)
    store_cls = type(get_store())

    def always_taken(self, slot_id, container_id, expected_container_id=None):
        raise SlotOccupiedError(slot_id)

    monkeypatch.setattr(store_cls, "update_slot", always_taken)

    with pytest.raises(NoCapacityError):
        yard_logic.place_container(block.id, {"container_number": "LOST0000001", "consignee_name": "Acme"})

    assert Container.query.count() == 0
    assert ContainerHistory.query.count() == 0


# =========================
# assign / remove
# =========================

def test_assign_container_to_empty_slot(make_block):
    block = make_block()
    c = _new_container()
    target = _slot_at(block.id, 2, 1, 1)

    slot = yard_logic.assign_container_to_slot(target.id, c.id)

    assert slot.container_id == c.id
    assert c.holding_area == "yard"
    assert ContainerHistory.query.filter_by(action="moved").one().new_location == "D-B2-R1-T1"


def test_assign_never_overwrites_occupied_slot(make_block, place):
    block = make_block()
    first, slot = place(block.id)
    c = _new_container()

    with pytest.raises(SlotOccupiedError):
        yard_logic.assign_container_to_slot(slot.id, c.id)

    assert get_store().get_slot(slot.id).container_id == first.id
    assert c.holding_area == "none"


def test_assign_rejects_container_already_in_another_slot(make_block, place):
    block = make_block()
    container, _ = place(block.id)
    other = _slot_at(block.id, 2, 2, 1)

    with pytest.raises(ValidationError) as exc:
        yard_logic.assign_container_to_slot(other.id, container.id)
    assert "already placed at D-B1-R1-T1" in exc.value.errors[0]


def test_assign_unknown_slot_or_container(make_block):
    block = make_block()
    c = _new_container()
    with pytest.raises(NotFoundError):
        yard_logic.assign_container_to_slot(9999, c.id)
    with pytest.raises(NotFoundError):
        yard_logic.assign_container_to_slot(_slot_at(block.id, 1, 1, 1).id, 9999)


def test_remove_container_keeps_container_unplaced(make_block, place):
    block = make_block()
    container, slot = place(block.id)

    removed = yard_logic.remove_container(slot.id)

    assert removed.id == container.id
    assert Container.query.count() == 1
    assert removed.holding_area == "none"
    assert get_store().get_slot(slot.id).container_id is None
    assert get_store().find_slot_for_container(container.id) is None
    assert ContainerHistory.query.filter_by(action="removed").one().notes == "Removed from D-B1-R1-T1"


def test_remove_from_empty_slot_fails(make_block):
    block = make_block()
    slot = _slot_at(block.id, 1, 1, 1)
    with pytest.raises(NotOccupiedError):
        yard_logic.remove_container(slot.id)


def test_slots_cycle_between_empty_and_occupied(make_block, place):
    block = make_block(bays=1, rows=1, tiers=1)
    for _ in range(3):
        _, slot = place(block.id)
        yard_logic.remove_container(slot.id)
    assert yard_logic.compute_utilization(block.id).occupied_slots == 0
    assert Container.query.count() == 3


# =========================
# access path
# =========================

def test_access_path_top_container_is_directly_accessible(make_block, place):
    block = make_block(bays=1, rows=1, tiers=3)
    place(block.id)
    _, top = place(block.id)

    path = yard_logic.compute_access_path(block.id, top.id)
    assert path.directly_accessible is True
    assert path.blocking == []


def test_access_path_lists_blockers_topmost_first(make_block, place):
    block = make_block(bays=1, rows=1, tiers=4)
    _, bottom = place(block.id)
    second, _ = place(block.id)
    third, _ = place(block.id)

    path = yard_logic.compute_access_path(block.id, bottom.id)

    assert path.directly_accessible is False
    assert [c.id for c in path.blocking_containers] == [third.id, second.id]
    assert [s.tier for s, _ in path.blocking] == [3, 2]


def test_access_path_column_with_gap(make_block, place):
    block = make_block(bays=1, rows=1, tiers=3)
    _, tier1 = place(block.id)
    tier2_container, _ = place(block.id)

    path = yard_logic.compute_access_path(block.id, tier1.id)
    assert path.directly_accessible is False
    assert path.blocking_containers == [tier2_container]


def test_access_path_ignores_other_columns(make_block):
    block = make_block(bays=2, rows=1, tiers=2)
    low = _new_container("LOWU0000001")
    neighbour_top = _new_container("NBRU0000001")
    yard_logic.assign_container_to_slot(_slot_at(block.id, 1, 1, 1).id, low.id)
    yard_logic.assign_container_to_slot(_slot_at(block.id, 2, 1, 2).id, neighbour_top.id)

    path = yard_logic.compute_access_path(block.id, _slot_at(block.id, 1, 1, 1).id)
    assert path.directly_accessible is True


def test_access_path_on_empty_slot_or_other_block(make_block, place):
    block = make_block()
    other = make_block("E")
    _, slot = place(block.id)

    with pytest.raises(NotFoundError):
        yard_logic.compute_access_path(block.id, _slot_at(block.id, 2, 2, 2).id)
    with pytest.raises(NotFoundError):
        yard_logic.compute_access_path(other.id, slot.id)


# =========================
# block management / views
# =========================

def test_delete_block_refused_while_occupied(make_block, place):
    block = make_block()
    _, slot = place(block.id)

    with pytest.raises(ValidationError):
        yard_logic.delete_block(block.id)

    yard_logic.remove_container(slot.id)
    yard_logic.delete_block(block.id)

    assert Block.query.count() == 0
    assert Slot.query.count() == 0
    assert Container.query.count() == 1


def test_list_block_stats(make_block, place):
    a = make_block("A")
    b = make_block("B", bays=1, rows=1, tiers=1)
    place(b.id)

    stats = {item["block"].block_name: item["utilization"] for item in yard_logic.list_block_stats()}
    assert stats["A"].to_dict() == {"total_slots": 8, "occupied_slots": 0, "utilization_percentage": 0}
    assert stats["B"].to_dict() == {"total_slots": 1, "occupied_slots": 1, "utilization_percentage": 100}
    assert a.id != b.id


def test_column_counts(make_block, place):
    block = make_block(bays=2, rows=2, tiers=2)
    place(block.id)
    place(block.id)
    place(block.id)

    assert yard_logic.column_counts(block.id) == {"B1-R1": 2, "B1-R2": 1, "B2-R1": 0, "B2-R2": 0}


def test_search_slots(make_block, place):
    block = make_block()
    place(block.id, container_number="FOUND000001", consignee_name="Blue Harbor")
    place(block.id, container_number="OTHER000001", consignee_name="Red Port")

    assert len(yard_logic.search_slots(block.id, "")) == 8
    assert [s.container.container_number for s in yard_logic.search_slots(block.id, "blue")] == ["FOUND000001"]
    assert [s.label for s in yard_logic.search_slots(block.id, "b2-r2-t2")] == ["B2-R2-T2"]


def test_signals_fire_after_commit(make_block, place):
    received = []

    def on_slot(sender, **kw):
        received.append(("slot", kw["slot_id"], kw["container_id"]))

    def on_block(sender, **kw):
        received.append(("block", kw["block_id"], kw["action"]))

    signals.slot_changed.connect(on_slot)
    signals.block_changed.connect(on_block)
    try:
        block = make_block()
        container, slot = place(block.id)
        yard_logic.remove_container(slot.id)
    finally:
        signals.slot_changed.disconnect(on_slot)
        signals.block_changed.disconnect(on_block)

    assert received == [
        ("block", block.id, "created"),
        ("slot", slot.id, container.id),
        ("slot", slot.id, None),
    ]


def test_failed_operation_sends_no_signal(make_block):
    block = make_block()
    received = []

    def on_slot(sender, **kw):
        received.append(kw)

    signals.slot_changed.connect(on_slot)
    try:
        with pytest.raises(NotOccupiedError):
            yard_logic.remove_container(_slot_at(block.id, 1, 1, 1).id)
    finally:
        signals.slot_changed.disconnect(on_slot)

    assert received == []
