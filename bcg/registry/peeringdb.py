"""
PeeringDB client

Looks up a network by ASN and returns its registered AS-Set and advertised
prefix counts. One GET per call, bounded timeout, no retry.
"""

import logging
import time
from typing import Any, Dict, Optional

import requests

from bcg import __version__
from bcg.models import RegistryMaxPrefixes
from bcg.registry.base import ASMetadataSource
from bcg.utils.error_handling import RegistryFetchError


class PeeringDBClient(ASMetadataSource):
    """Query the PeeringDB ``net`` endpoint"""

    def __init__(self,
                 base_url: str = "https://peeringdb.com",
                 timeout: int = 5,
                 api_key: Optional[str] = None,
                 logger: Optional[logging.Logger] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_key = api_key
        self.logger = logger or logging.getLogger("bcg.registry.peeringdb")

    def _headers(self) -> Dict[str, str]:
        headers = {"User-Agent": f"bcg/{__version__}", "Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Api-Key {self.api_key}"
        return headers

    def fetch_as_metadata(self, asn: int) -> RegistryMaxPrefixes:
        url = f"{self.base_url}/api/net"
        self.logger.info(f"Running PeeringDB query for AS{asn}")
        start_time = time.time()

        try:
            response = requests.get(
                url, params={"asn": asn}, headers=self._headers(), timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise RegistryFetchError(
                f"PeeringDB request for AS{asn} failed: {e}",
                asn=asn,
                guidance="This peer might not have a PeeringDB page; "
                         "disable automaxpfx/autopfxfilter and configure it manually",
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RegistryFetchError(f"PeeringDB returned invalid JSON for AS{asn}: {e}", asn=asn)

        record = self._single_record(asn, body)
        metadata = RegistryMaxPrefixes(
            asn=asn,
            name=str(record.get("name") or ""),
            as_set=str(record.get("irr_as_set") or "").strip(),
            max_prefix4=self._prefix_count(asn, record, "info_prefixes4"),
            max_prefix6=self._prefix_count(asn, record, "info_prefixes6"),
        )

        self.logger.debug(
            f"PeeringDB AS{asn} ({metadata.name}): as-set={metadata.as_set or '-'} "
            f"prefixes4={metadata.max_prefix4} prefixes6={metadata.max_prefix6} "
            f"in {time.time() - start_time:.3f}s"
        )
        return metadata

    def _single_record(self, asn: int, body: Any) -> Dict[str, Any]:
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            raise RegistryFetchError(f"PeeringDB response for AS{asn} has no data list", asn=asn)
        if not data:
            raise RegistryFetchError(
                f"PeeringDB has no network record for AS{asn}",
                asn=asn,
                guidance="Disable automaxpfx/autopfxfilter for this peer and configure it manually",
            )
        if len(data) > 1:
            self.logger.warning(f"PeeringDB returned {len(data)} records for AS{asn}; using the first")
        if not isinstance(data[0], dict):
            raise RegistryFetchError(f"PeeringDB record for AS{asn} is malformed", asn=asn)
        return data[0]

    def _prefix_count(self, asn: int, record: Dict[str, Any], key: str) -> int:
        value = record.get(key)
        # null means "not disclosed"
        if value is None:
            self.logger.warning(f"PeeringDB does not disclose {key} for AS{asn}; using 0")
            return 0
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise RegistryFetchError(
                f"PeeringDB record for AS{asn} has invalid {key}: {value!r}", asn=asn
            )
        return value
