from .interfaces import RPCClientInterface
from .rpc_client import ChainRpcClient
from .endpoint_pool import EndpointPool
from .retry import RetryPolicy, is_endpoint_unhealthy
