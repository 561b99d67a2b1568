from datetime import datetime

from stackwise.extensions import db

BLOCK_TYPES = ("regular", "reefer", "hazardous", "empty")


class Block(db.Model):
    __tablename__ = "blocks"

    id = db.Column(db.Integer, primary_key=True)
    block_name = db.Column(db.String(50), unique=True, nullable=False)

    bays = db.Column(db.Integer, nullable=False)
    rows = db.Column(db.Integer, nullable=False)
    tiers = db.Column(db.Integer, nullable=False, default=4)

    type = db.Column(db.String(20), nullable=False, default="regular")  # regular | reefer | hazardous | empty

    # bays * rows * tiers, stored for quick reference
    capacity = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    slots = db.relationship(
        "Slot",
        back_populates="block",
        cascade="all, delete-orphan",
        lazy=True
    )


class Slot(db.Model):
    __tablename__ = "slots"
    __table_args__ = (
        db.UniqueConstraint("block_id", "bay", "row", "tier", name="uq_slots_block_coordinate"),
        # A container sits in at most one slot
        db.UniqueConstraint("container_id", name="uq_slots_container"),
    )

    id = db.Column(db.Integer, primary_key=True)

    block_id = db.Column(
        db.Integer,
        db.ForeignKey("blocks.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    bay = db.Column(db.Integer, nullable=False)   # 1..bays
    row = db.Column(db.Integer, nullable=False)   # 1..rows
    tier = db.Column(db.Integer, nullable=False)  # 1..tiers, 1 = ground

    container_id = db.Column(
        db.Integer,
        db.ForeignKey("containers.id"),
        nullable=True
    )

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    block = db.relationship("Block", back_populates="slots")
    container = db.relationship("Container", back_populates="slot")

    @property
    def label(self) -> str:
        return f"B{self.bay}-R{self.row}-T{self.tier}"

    @property
    def coordinate(self) -> tuple:
        return (self.bay, self.row, self.tier)

    @property
    def is_occupied(self) -> bool:
        return self.container_id is not None
