# Import models so Flask-Migrate / SQLAlchemy see every table
from .user import User
from .yard import Block, Slot, BLOCK_TYPES
from .container import Container, HOLDING_AREAS
from .history import ContainerHistory
