from .transfer_repository import TransferRepository
