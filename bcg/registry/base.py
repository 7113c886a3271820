"""
Abstract registry capabilities.

The resolver depends only on these, so tests can substitute fakes for the
PeeringDB API and the bgpq4 subprocess.
"""

from abc import ABC, abstractmethod
from typing import List

from bcg.models import RegistryMaxPrefixes


class ASMetadataSource(ABC):
    """Provides AS metadata keyed by ASN"""

    @abstractmethod
    def fetch_as_metadata(self, asn: int) -> RegistryMaxPrefixes:
        """
        Fetch metadata for one ASN

        Raises:
            RegistryFetchError: On any failure; callers treat it as fatal
        """


class PrefixFilterSource(ABC):
    """Expands an AS-Set macro into an ordered list of prefixes"""

    @abstractmethod
    def expand(self, macro: str, family: int, irr_host: str) -> List[str]:
        """
        Expand ``macro`` for address family 4 or 6 using IRR server ``irr_host``

        Raises:
            RegistryFetchError: On any failure; callers treat it as fatal
        """
