from datetime import datetime

from stackwise.extensions import db


class ContainerHistory(db.Model):
    __tablename__ = "container_history"

    id = db.Column(db.Integer, primary_key=True)

    container_id = db.Column(
        db.Integer,
        db.ForeignKey("containers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    action = db.Column(db.String(30), nullable=False)  # created | moved | removed | status_changed | area_changed

    previous_status = db.Column(db.String(30), nullable=True)
    new_status = db.Column(db.String(30), nullable=True)

    # "<block>-B1-R2-T3" for yard moves, area name otherwise
    new_location = db.Column(db.String(60), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    meta = db.Column(db.JSON, nullable=True)

    performed_by = db.Column(
        db.Integer,
        db.ForeignKey("users.id"),
        nullable=True
    )

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    container = db.relationship("Container", back_populates="history")
    user = db.relationship(
        "User",
        backref=db.backref("history_entries", lazy=True),
        lazy=True
    )
