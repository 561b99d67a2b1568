# stackwise/models/container.py
from datetime import datetime

from stackwise.extensions import db

# Where the container physically is right now. Independent from `status`.
HOLDING_AREAS = ("none", "yard", "verification", "stripping")


class Container(db.Model):
    __tablename__ = "containers"

    id = db.Column(db.Integer, primary_key=True)

    container_number = db.Column(db.String(20), unique=True, nullable=False)

    # 20GP, 40GP, 40HC, 20RF ...
    type = db.Column(db.String(10), nullable=False, default="20GP")
    size = db.Column(db.String(10), nullable=True)

    consignee_name = db.Column(db.String(150), nullable=True)

    # Condition / lifecycle label: empty, held, damaged, loaded ...
    status = db.Column(db.String(30), nullable=False, default="empty")

    holding_area = db.Column(db.String(20), nullable=False, default="none")

    # Manifest data (informational)
    bl_number = db.Column(db.String(50), nullable=True)
    freight_indicator = db.Column(db.String(10), nullable=True)  # FCL | LCL
    seal_one = db.Column(db.String(50), nullable=True)
    seal_two = db.Column(db.String(50), nullable=True)
    seal_three = db.Column(db.String(50), nullable=True)
    number_of_packages = db.Column(db.Integer, nullable=True)
    package_unit = db.Column(db.String(20), nullable=True)
    weight = db.Column(db.Float, nullable=True)
    weight_unit = db.Column(db.String(10), nullable=True)
    reefer_plug = db.Column(db.String(1), nullable=True)  # Y | N
    minimum_temperature = db.Column(db.Float, nullable=True)
    maximum_temperature = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 1:1 with the slot currently holding it (None when unplaced)
    slot = db.relationship(
        "Slot",
        back_populates="container",
        uselist=False,
        lazy=True
    )

    history = db.relationship(
        "ContainerHistory",
        back_populates="container",
        cascade="all, delete-orphan",
        order_by="desc(ContainerHistory.created_at)",
        lazy=True
    )
