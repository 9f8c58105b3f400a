# transfer_indexer/clients/rpc_client.py

from typing import Any, Dict, List

from web3 import Web3

from .interfaces import RPCClientInterface


class ChainRpcClient(RPCClientInterface):
    """
    A client for interacting with an EVM chain over HTTP JSON-RPC.
    """
    
    def __init__(self, endpoint_url: str, timeout: int = 30):
        self.endpoint_url = endpoint_url
        self.w3 = Web3(Web3.HTTPProvider(endpoint_url, request_kwargs={'timeout': timeout}))
    
    def get_latest_block_number(self) -> int:
        return self.w3.eth.block_number
    
    def get_block(self, block_number: int, full_transactions: bool = False) -> Dict[str, Any]:
        block = self.w3.eth.get_block(block_number, full_transactions=full_transactions)
        return dict(block)
    
    def get_logs(self, filter_params: Dict[str, Any]) -> List[Dict[str, Any]]:
        params = dict(filter_params)
        if params.get('address'):
            params['address'] = Web3.to_checksum_address(params['address'])
        
        logs = self.w3.eth.get_logs(params)
        return [dict(log) for log in logs]
    
    def __repr__(self) -> str:
        return f"<ChainRpcClient(endpoint={self.endpoint_url})>"
