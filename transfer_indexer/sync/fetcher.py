# transfer_indexer/sync/fetcher.py

from typing import Any, Dict, List, Optional

from ..clients.retry import RetryPolicy
from ..core.logging import LoggingMixin
from ..types import TransferEvent


# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = '0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef'


def to_hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return '0x' + bytes(value).hex()
    text = str(value).lower()
    return text if text.startswith('0x') else f'0x{text}'


def to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, 'big') if value else 0
    text = str(value)
    if text.startswith(('0x', '0X')):
        return int(text, 16) if len(text) > 2 else 0
    return int(text)


def address_topic(address: str) -> str:
    """Left-pad a 20-byte address to a 32-byte indexed topic."""
    return '0x' + address.lower()[2:].rjust(64, '0')


def topic_to_address(topic: Any) -> str:
    return '0x' + to_hex(topic)[-40:]


class BatchFetcher(LoggingMixin):
    """
    Pulls Transfer(from, to=recipient, value) logs of one token for a block range.
    
    The range is queried as given; keeping it within provider limits is the
    caller's job. Every RPC call goes through the retry policy.
    """
    
    def __init__(self,
                 retry: RetryPolicy,
                 mode: str,
                 token_address: str,
                 token_symbol: str,
                 recipient_address: str):
        self.retry = retry
        self.mode = mode
        self.token_address = token_address.lower()
        self.token_symbol = token_symbol
        self.recipient_address = recipient_address.lower()
    
    def build_filter(self, from_block: int, to_block: int) -> Dict[str, Any]:
        return {
            'fromBlock': from_block,
            'toBlock': to_block,
            'address': self.token_address,
            'topics': [TRANSFER_TOPIC, None, address_topic(self.recipient_address)],
        }
    
    def fetch_range(self, from_block: int, to_block: int) -> List[TransferEvent]:
        if from_block > to_block:
            return []
        
        filter_params = self.build_filter(from_block, to_block)
        logs = self.retry.run(
            lambda client: client.get_logs(filter_params),
            description=f"get_logs {from_block}-{to_block}",
        )
        
        if not logs:
            self.log_debug("No transfers in range", mode=self.mode,
                           from_block=from_block, to_block=to_block)
            return []
        
        timestamps: Dict[int, int] = {}
        events = []
        
        for log in sorted(logs, key=lambda l: (to_int(l['blockNumber']), to_int(l.get('logIndex', 0)))):
            event = self._decode(log, timestamps)
            if event is not None:
                events.append(event)
        
        self.log_debug("Fetched transfers", mode=self.mode, from_block=from_block,
                       to_block=to_block, inserted=len(events))
        return events
    
    def get_block_timestamp(self, block_number: int) -> int:
        block = self.retry.run(
            lambda client: client.get_block(block_number),
            description=f"get_block {block_number}",
        )
        return to_int(block['timestamp'])
    
    def _decode(self, log: Dict[str, Any], timestamps: Dict[int, int]) -> Optional[TransferEvent]:
        topics = log.get('topics') or []
        tx_hash = to_hex(log['transactionHash'])
        
        if log.get('removed'):
            self.log_warning("Skipping removed log", tx_hash=tx_hash)
            return None
        
        # ERC-721 Transfer shares the signature but indexes the token id (4 topics)
        if len(topics) != 3 or to_hex(topics[0]) != TRANSFER_TOPIC:
            self.log_debug("Skipping non ERC-20 transfer log", tx_hash=tx_hash)
            return None
        
        block_number = to_int(log['blockNumber'])
        if block_number not in timestamps:
            timestamps[block_number] = self.get_block_timestamp(block_number)
        
        return TransferEvent(
            mode=self.mode,
            block_number=block_number,
            transaction_hash=tx_hash,
            log_index=to_int(log.get('logIndex', 0)),
            from_address=topic_to_address(topics[1]),
            to_address=topic_to_address(topics[2]),
            token_address=to_hex(log.get('address') or self.token_address),
            token_symbol=self.token_symbol,
            value=str(to_int(log.get('data') or '0x')),
            timestamp=timestamps[block_number],
        )
