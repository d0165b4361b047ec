"""Repository abstractions for database interactions."""

from .contract_repository import ContractRepository
from .dog_repository import DogRepository
from .entry_repository import EntryRepository
from .order_repository import OrderRepository
from .show_repository import ShowRepository

__all__ = [
    "ContractRepository",
    "DogRepository",
    "EntryRepository",
    "OrderRepository",
    "ShowRepository",
]
