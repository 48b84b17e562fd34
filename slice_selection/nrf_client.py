# File location: nssf/slice_selection/nrf_client.py
# NRF client - OAuth2 access tokens, AMF discovery and NF profile retrieval (3GPP TS 29.510)

import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from config import settings
from .errors import handle_nrf_error
from .models import AccessTokenResponse, NFProfile, NfType, PlmnId, SearchResult, Snssai, Tai

logger = logging.getLogger(__name__)

DISCOVERY_SCOPE = "nnrf-disc"
MANAGEMENT_SCOPE = "nnrf-nfm"


@dataclass
class NrfClientConfig:
    """Where to reach one NRF, as advertised by NSI and AMF set configuration"""
    nrf_id: str
    nf_instance_id: str
    nrf_nf_mgt_uri: Optional[str] = None
    nrf_access_token_uri: Optional[str] = None


@dataclass
class DiscoverAmfParams:
    target_plmn_list: Optional[List[PlmnId]] = None
    target_nsi_list: Optional[List[str]] = None
    target_snssai_list: Optional[List[Snssai]] = None
    amf_region_id: Optional[str] = None
    amf_set_id: Optional[str] = None
    tai_list: Optional[List[Tai]] = None
    limit: Optional[int] = None


def oauth2_required_for(oauth2_config: Optional[Dict[str, bool]], service_name: str) -> bool:
    if not oauth2_config:
        return False
    return oauth2_config.get(service_name) is True


@dataclass
class _CachedToken:
    token: str
    expires_at: float


class AccessTokenCache:
    """
    Access tokens keyed by (nrf id, scope). An entry is served until
    expiry minus the safety margin, then evicted on the next lookup.
    """

    def __init__(self, margin: float = settings.NRF_TOKEN_EXPIRY_MARGIN, clock: Callable[[], float] = time.monotonic):
        self.margin = margin
        self.clock = clock
        self._entries: Dict[Tuple[str, str], _CachedToken] = {}

    def get(self, nrf_id: str, scope: str) -> Optional[str]:
        key = (nrf_id, scope)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.clock() >= entry.expires_at - self.margin:
            del self._entries[key]
            return None
        return entry.token

    def put(self, nrf_id: str, scope: str, token: str, expires_in: float):
        self._entries[(nrf_id, scope)] = _CachedToken(token=token, expires_at=self.clock() + expires_in)

    def clear(self):
        self._entries.clear()

    def __len__(self):
        return len(self._entries)


class NrfClient:
    """Async client for the NRF endpoints the NSSF consumes"""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        token_cache: Optional[AccessTokenCache] = None,
        timeout: float = settings.NRF_REQUEST_TIMEOUT,
    ):
        self.http_client = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self.token_cache = token_cache if token_cache is not None else AccessTokenCache()
        self.timeout = timeout

    async def close(self):
        await self.http_client.aclose()

    async def acquire_access_token(
        self,
        config: NrfClientConfig,
        scope: str,
        target_nf_type: Optional[NfType] = None,
        target_nf_instance_id: Optional[str] = None,
    ) -> Optional[str]:
        """Client-credentials grant; None when the NRF advertises no token endpoint"""
        if not config.nrf_access_token_uri:
            return None

        cached = self.token_cache.get(config.nrf_id, scope)
        if cached:
            return cached

        form = {
            "grant_type": "client_credentials",
            "nfInstanceId": config.nf_instance_id,
            "scope": scope,
        }
        if target_nf_type:
            form["targetNfType"] = target_nf_type.value
        if target_nf_instance_id:
            form["targetNfInstanceId"] = target_nf_instance_id

        try:
            response = await self.http_client.post(config.nrf_access_token_uri, data=form, timeout=self.timeout)
            response.raise_for_status()
            token = AccessTokenResponse(**response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to acquire access token from NRF {config.nrf_id}: {e}")
            raise handle_nrf_error(e, config.nrf_access_token_uri)

        self.token_cache.put(config.nrf_id, scope, token.access_token, token.expires_in)
        logger.info(f"Acquired access token for scope {scope} from NRF {config.nrf_id}")
        return token.access_token

    async def _headers(
        self,
        config: NrfClientConfig,
        oauth2_required: bool,
        scope: str,
        target_nf_type: Optional[NfType] = None,
        target_nf_instance_id: Optional[str] = None,
    ) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if oauth2_required:
            token = await self.acquire_access_token(config, scope, target_nf_type, target_nf_instance_id)
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    async def discover_amf_instances(
        self,
        config: NrfClientConfig,
        params: DiscoverAmfParams,
        oauth2_required: bool = False,
    ) -> List[NFProfile]:
        if not config.nrf_nf_mgt_uri:
            return []

        headers = await self._headers(config, oauth2_required, DISCOVERY_SCOPE, target_nf_type=NfType.AMF)

        query: List[Tuple[str, str]] = [("target-nf-type", NfType.AMF.value)]
        for plmn in params.target_plmn_list or []:
            query.append(("target-plmn-list", json.dumps(plmn.model_dump(mode="json"))))
        for nsi in params.target_nsi_list or []:
            query.append(("target-nsi-list", nsi))
        for snssai in params.target_snssai_list or []:
            query.append(("snssais", json.dumps(snssai.model_dump(mode="json", exclude_none=True))))
        if params.amf_region_id:
            query.append(("amf-region-id", params.amf_region_id))
        if params.amf_set_id:
            query.append(("amf-set-id", params.amf_set_id))
        for tai in params.tai_list or []:
            query.append(("tai", json.dumps(tai.model_dump(mode="json"))))
        if params.limit:
            query.append(("limit", str(params.limit)))

        url = f"{config.nrf_nf_mgt_uri}/nf-instances"
        try:
            response = await self.http_client.get(url, params=query, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            result = SearchResult(**response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"AMF discovery via NRF {config.nrf_id} failed: {e}")
            raise handle_nrf_error(e, url)

        logger.info(f"NRF {config.nrf_id} returned {len(result.nfInstances)} AMF profile(s)")
        return result.nfInstances

    async def get_nf_profile(
        self,
        config: NrfClientConfig,
        nf_instance_id: str,
        oauth2_required: bool = False,
    ) -> Optional[NFProfile]:
        """Fetch one NF profile; None when the NRF does not know the instance"""
        if not config.nrf_nf_mgt_uri:
            return None

        headers = await self._headers(
            config, oauth2_required, MANAGEMENT_SCOPE, target_nf_instance_id=nf_instance_id
        )
        url = f"{config.nrf_nf_mgt_uri}/nf-instances/{nf_instance_id}"
        try:
            response = await self.http_client.get(url, headers=headers, timeout=self.timeout)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return NFProfile(**response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Fetching NF profile {nf_instance_id} from NRF {config.nrf_id} failed: {e}")
            raise handle_nrf_error(e, url)
