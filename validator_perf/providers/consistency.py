import logging
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


class InconsistentProviders(Exception):
    pass


class NotHealthyProvider(Exception):
    pass


class ProviderConsistencyModule(ABC):
    """
    Fallback hosts are only useful when they follow the same chain.

    Subclasses tell which chain a host follows with `_get_chain_identity_with_provider`.
    """

    def check_providers_consistency(self) -> str | None:
        """Returns the chain identity shared by all hosts, None if there are no hosts"""
        identities: dict[str, str] = {}

        for provider_index, host in enumerate(self.get_all_providers()):
            domain = urlparse(str(host)).netloc or str(provider_index)
            try:
                identities[domain] = self._get_chain_identity_with_provider(provider_index)
            except Exception as error:
                raise NotHealthyProvider(f'Provider [{domain}] does not respond.') from error
            logger.debug({'msg': f'Provider [{domain}] follows chain {identities[domain]}.'})

        if len(set(identities.values())) > 1:
            raise InconsistentProviders(f'Providers follow different chains: {identities}.')

        return next(iter(identities.values()), None)

    @abstractmethod
    def get_all_providers(self) -> list[Any]:
        """Returns list of hosts or providers."""
        raise NotImplementedError("get_all_providers should be implemented")

    @abstractmethod
    def _get_chain_identity_with_provider(self, provider_index: int) -> str:
        """Health check call to a single host, returns what identifies its chain"""
        raise NotImplementedError("_get_chain_identity_with_provider should be implemented")
