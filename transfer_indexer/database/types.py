# transfer_indexer/database/types.py

from typing import Optional

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator


class EvmAddressType(TypeDecorator):
    impl = String(42)
    cache_ok = True
    
    def process_bind_param(self, value: Optional[str], dialect) -> Optional[str]:
        return str(value).lower() if value else None
    
    def process_result_value(self, value: Optional[str], dialect) -> Optional[str]:
        return value.lower() if value else None


class EvmHashType(TypeDecorator):
    impl = String(66)
    cache_ok = True
    
    def process_bind_param(self, value: Optional[str], dialect) -> Optional[str]:
        return str(value).lower() if value else None
    
    def process_result_value(self, value: Optional[str], dialect) -> Optional[str]:
        return value.lower() if value else None
