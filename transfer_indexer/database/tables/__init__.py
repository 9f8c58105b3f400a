from .transfer import TokenTransfer
