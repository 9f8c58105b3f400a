# transfer_indexer/clients/retry.py

import time
from typing import Callable, Optional, TypeVar

import requests

from ..core.errors import ConfigurationError, EndpointsExhaustedError
from ..core.logging import LoggingMixin
from .endpoint_pool import EndpointPool
from .interfaces import RPCClientInterface


T = TypeVar('T')

UNHEALTHY_MARKERS = (
    'no backend is currently healthy',
    'could not coalesce error',
    'bad gateway',
    'service unavailable',
    'gateway timeout',
    'too many requests',
)

UNHEALTHY_STATUS_CODES = {429, 500, 502, 503, 504}


def is_endpoint_unhealthy(error: BaseException) -> bool:
    """True when the failure says the endpoint itself is unusable."""
    if isinstance(error, EndpointsExhaustedError):
        return False
    
    if isinstance(error, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return True
    
    if isinstance(error, requests.exceptions.HTTPError) and error.response is not None:
        if error.response.status_code in UNHEALTHY_STATUS_CODES:
            return True
    
    message = str(error).lower()
    return any(marker in message for marker in UNHEALTHY_MARKERS)


class RetryPolicy(LoggingMixin):
    """
    Bounded retry around RPC operations with endpoint failover.
    
    The operation receives the pool's active client on every attempt, so a
    failover between attempts is picked up without the caller noticing.
    """
    
    def __init__(self,
                 pool: EndpointPool,
                 max_attempts: int = 3,
                 delay: float = 1.0,
                 sleep: Callable[[float], object] = time.sleep):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        
        self.pool = pool
        self.max_attempts = max_attempts
        self.delay = delay
        self._sleep = sleep
    
    def run(self,
            operation: Callable[[RPCClientInterface], T],
            description: str = "rpc call",
            max_attempts: Optional[int] = None) -> T:
        attempts = max_attempts or self.max_attempts
        
        for attempt in range(1, attempts + 1):
            client = self.pool.current_endpoint()
            try:
                return operation(client)
            except ConfigurationError:
                raise
            except Exception as e:
                self.log_warning(f"{description} failed",
                                 attempt=f"{attempt}/{attempts}",
                                 endpoint=client.endpoint_url,
                                 error=str(e),
                                 exception_type=type(e).__name__)
                
                if attempt >= attempts:
                    raise
                
                self._sleep(self.delay)
                
                if is_endpoint_unhealthy(e) and not self.pool.failover():
                    raise EndpointsExhaustedError(
                        f"{description} failed and no backup endpoint is left: {e}",
                        endpoint=client.endpoint_url,
                    ) from e
