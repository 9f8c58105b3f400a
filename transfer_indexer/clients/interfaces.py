"""
Interfaces for chain RPC clients.

The sync engine only needs block height, filtered logs and block headers,
so any JSON-RPC backend (or an in-memory chain in tests) can stand in.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List


class RPCClientInterface(ABC):
    """Interface for RPC client implementations."""
    
    endpoint_url: str
    
    @abstractmethod
    def get_latest_block_number(self) -> int:
        """
        Get the latest block number.
        
        Returns:
            Latest block number
        """
        pass
    
    @abstractmethod
    def get_block(self, block_number: int, full_transactions: bool = False) -> Dict[str, Any]:
        """
        Get a block by number.
        
        Args:
            block_number: Block number
            full_transactions: Whether to include full transaction objects
            
        Returns:
            Block data, including at least 'number' and 'timestamp'
        """
        pass
    
    @abstractmethod
    def get_logs(self, filter_params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Get logs matching an eth_getLogs filter.
        
        Args:
            filter_params: fromBlock, toBlock, address and topics
            
        Returns:
            Matching logs in chain order
        """
        pass
