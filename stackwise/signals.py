"""Change notifications for live views.

Sent only after a successful commit. Receivers get the sender name
``"stackwise"`` plus keyword ids, e.g.::

    @slot_changed.connect
    def refresh(sender, block_id, slot_id, container_id):
        ...
"""
from blinker import Namespace

SENDER = "stackwise"

_signals = Namespace()

block_changed = _signals.signal("block-changed")
slot_changed = _signals.signal("slot-changed")
container_changed = _signals.signal("container-changed")
