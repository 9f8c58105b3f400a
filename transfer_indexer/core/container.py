# transfer_indexer/core/container.py

from typing import Callable, Dict, List, Type, TypeVar

from .logging import IndexerLogger, log_with_context, DEBUG
from ..types import SyncConfig

T = TypeVar('T')

Factory = Callable[['IndexerContainer'], T]


class IndexerContainer:
    """
    Service registry for one indexer instance.

    Every registered factory runs at most once; later lookups return the
    cached service. Factories resolve their own dependencies through get().
    """

    def __init__(self, config: SyncConfig):
        self._config = config
        self._factories: Dict[type, Factory] = {}
        self._services: Dict[type, object] = {}
        self._resolving: List[type] = []
        self._logger = IndexerLogger.get_logger('core.container')

    @property
    def config(self) -> SyncConfig:
        return self._config

    def register_factory(self, service_type: Type[T], factory: Factory) -> 'IndexerContainer':
        self._factories[service_type] = factory
        log_with_context(self._logger, DEBUG, "Registered service factory",
                         service_type=service_type.__name__)
        return self

    def get(self, service_type: Type[T]) -> T:
        if service_type in self._services:
            return self._services[service_type]

        if service_type in self._resolving:
            chain = [t.__name__ for t in self._resolving[self._resolving.index(service_type):]]
            raise ValueError(f"Circular dependency detected: {' -> '.join(chain + [service_type.__name__])}")

        factory = self._factories.get(service_type)
        if factory is None:
            raise ValueError(f"Service {service_type.__name__} not registered")

        self._resolving.append(service_type)
        try:
            service = self._services[service_type] = factory(self)
        finally:
            self._resolving.pop()

        log_with_context(self._logger, DEBUG, "Service created",
                         service_type=service_type.__name__)
        return service
