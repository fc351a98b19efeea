"""Registry engine: Cloudsmith client and publisher."""

from cloudsmith_sync.engines.registry.cloudsmith_client import CloudsmithClient
from cloudsmith_sync.engines.registry.publisher import Publisher, RegistryReceipt

__all__ = ["CloudsmithClient", "Publisher", "RegistryReceipt"]
