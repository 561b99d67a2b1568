"""Yard error taxonomy.

Every error carries an HTTP status and a machine code so the blueprints can
answer with the same JSON shape regardless of which operation failed.
"""
from typing import Iterable, Optional


class YardError(Exception):
    status_code = 400
    code = "YARD_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.code, "message": self.message}


class ValidationError(YardError):
    """Caller-supplied data broke one or more rules; lists all of them."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        super().__init__(", ".join(self.errors))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class NoCapacityError(YardError):
    status_code = 409
    code = "NO_CAPACITY"

    def __init__(self, message: str = "No available slots in this block. The block is full."):
        super().__init__(message)


class SlotOccupiedError(NoCapacityError):
    code = "SLOT_OCCUPIED"

    def __init__(self, slot_id: Optional[int] = None):
        self.slot_id = slot_id
        super().__init__(f"Slot {slot_id} is already occupied" if slot_id else "Slot is already occupied")


class NotOccupiedError(YardError):
    status_code = 409
    code = "NOT_OCCUPIED"

    def __init__(self, slot_id: int):
        self.slot_id = slot_id
        super().__init__(f"Slot {slot_id} holds no container")


class NotFoundError(YardError):
    status_code = 404
    code = "NOT_FOUND"
