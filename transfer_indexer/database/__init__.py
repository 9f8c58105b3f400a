from .connection import DatabaseManager
from .base import Base
from .tables import TokenTransfer
from .repositories import TransferRepository
