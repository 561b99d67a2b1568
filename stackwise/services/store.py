# stackwise/services/store.py
"""
Persistence access for the yard model.

Everything goes through the Flask-SQLAlchemy session; callers wrap a whole
operation in ``transaction()`` so that read, validation and write commit (or
roll back) together.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from stackwise.errors import NotFoundError, NotOccupiedError, SlotOccupiedError, ValidationError, YardError
from stackwise.extensions import db
from stackwise.models.container import Container
from stackwise.models.yard import Block, Slot

logger = logging.getLogger(__name__)


@contextmanager
def transaction():
    """Commit on success, roll back on any error and re-raise it."""
    try:
        yield db.session
        db.session.commit()
    except YardError:
        db.session.rollback()
        raise
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Store transaction failed, rolled back")
        raise
    except Exception:
        db.session.rollback()
        raise


class YardStore:
    # =========================
    # Blocks
    # =========================

    def insert_block(self, block: Block) -> Block:
        db.session.add(block)
        db.session.flush()
        return block

    def get_block(self, block_id: int) -> Block:
        block = db.session.get(Block, block_id)
        if not block:
            raise NotFoundError(f"Block {block_id} not found")
        return block

    def find_block_by_name(self, block_name: str) -> Optional[Block]:
        return Block.query.filter(db.func.lower(Block.block_name) == block_name.lower()).first()

    def lock_block(self, block_id: int) -> Block:
        # Serializes placements into one block (FOR UPDATE on PostgreSQL)
        block = (
            db.session.query(Block)
            .filter(Block.id == block_id)
            .with_for_update()
            .one_or_none()
        )
        if not block:
            raise NotFoundError(f"Block {block_id} not found")
        return block

    def list_blocks(self) -> List[Block]:
        return Block.query.order_by(Block.created_at.desc(), Block.id.desc()).all()

    def delete_block(self, block: Block) -> None:
        db.session.delete(block)
        db.session.flush()

    # =========================
    # Slots
    # =========================

    def insert_slots(self, slots: Iterable[Slot]) -> None:
        db.session.add_all(list(slots))
        db.session.flush()

    def get_slot(self, slot_id: int) -> Slot:
        slot = db.session.get(Slot, slot_id, populate_existing=True)
        if not slot:
            raise NotFoundError(f"Slot {slot_id} not found")
        return slot

    def get_slots_for_block(self, block_id: int) -> List[Slot]:
        return (
            Slot.query.filter(Slot.block_id == block_id)
            .order_by(Slot.bay.asc(), Slot.row.asc(), Slot.tier.asc())
            .execution_options(populate_existing=True)
            .all()
        )

    def get_column(self, block_id: int, bay: int, row: int) -> List[Slot]:
        """Slots of one (bay, row) stack, topmost first."""
        return (
            Slot.query.filter(Slot.block_id == block_id, Slot.bay == bay, Slot.row == row)
            .order_by(Slot.tier.desc())
            .execution_options(populate_existing=True)
            .all()
        )

    def find_slot_for_container(self, container_id: int) -> Optional[Slot]:
        return Slot.query.filter(Slot.container_id == container_id).first()

    def count_slots(self, block_id: int, occupied: Optional[bool] = None) -> int:
        q = db.session.query(db.func.count(Slot.id)).filter(Slot.block_id == block_id)
        if occupied is True:
            q = q.filter(Slot.container_id.isnot(None))
        elif occupied is False:
            q = q.filter(Slot.container_id.is_(None))
        return int(q.scalar() or 0)

    def occupancy_by_block(self) -> dict:
        """{block_id: (total_slots, occupied_slots)} in a single grouped query."""
        rows = (
            db.session.query(Slot.block_id, db.func.count(Slot.id), db.func.count(Slot.container_id))
            .group_by(Slot.block_id)
            .all()
        )
        return {block_id: (int(total), int(occupied)) for block_id, total, occupied in rows}

    def update_slot(self, slot_id: int, container_id: Optional[int], expected_container_id: Optional[int] = None) -> Slot:
        """
        Conditional write of slot.container_id.

        The row only changes when its current container_id equals
        ``expected_container_id`` (NULL when placing). If the guard does not
        match nothing is written and the mismatch is reported.
        """
        q = db.session.query(Slot).filter(Slot.id == slot_id)
        if expected_container_id is None:
            q = q.filter(Slot.container_id.is_(None))
        else:
            q = q.filter(Slot.container_id == expected_container_id)

        try:
            updated = q.update(
                {Slot.container_id: container_id, Slot.updated_at: datetime.utcnow()},
                synchronize_session=False,
            )
        except IntegrityError as exc:
            logger.warning("Unique constraint hit while binding slot %s: %s", slot_id, exc.orig)
            raise SlotOccupiedError(slot_id) from exc

        slot = self.get_slot(slot_id)
        if updated:
            return slot

        if expected_container_id is None:
            raise SlotOccupiedError(slot_id)
        if slot.container_id is None:
            raise NotOccupiedError(slot_id)
        raise SlotOccupiedError(slot_id)

    # =========================
    # Containers
    # =========================

    def insert_container(self, container: Container) -> Container:
        db.session.add(container)
        try:
            db.session.flush()
        except IntegrityError:
            # unique container_number lost a race with another writer
            raise ValidationError([f"Container {container.container_number} already exists"])
        return container

    def get_container(self, container_id: int) -> Container:
        container = db.session.get(Container, container_id)
        if not container:
            raise NotFoundError(f"Container {container_id} not found")
        return container

    def get_container_by_number(self, container_number: str) -> Optional[Container]:
        return Container.query.filter(
            db.func.upper(Container.container_number) == (container_number or "").strip().upper()
        ).first()


def get_store() -> YardStore:
    return YardStore()
