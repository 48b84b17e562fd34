# File location: nssf/slice_selection/amf_selection.py
# AMF reselection - AMF Set -> AMF Service Set -> AMF Instance ranking, with NRF discovery

"""
AMF Selector

Local selection walks the configured hierarchy for the target PLMN:

1. AMF Set: must support every target S-NSSAI; priority descending, then
   capacity ascending. No qualifying set means no target at all.
2. AMF Service Set within that set: same filter, priority descending.
   Optional; the set-level result stands without it.
3. AMF Instances within the set (and service set): same filter, capacity
   descending, then load ascending. Every qualifying instance is returned.

discover_via_nrf asks the NRF of an AMF set for live AMF profiles instead.
"""

import logging
from typing import Iterable, List, Optional

from .models import (
    AmfCandidate,
    AmfSelectionResult,
    AmfSetConfig,
    NFProfile,
    NfStatus,
    PlmnId,
    Snssai,
    Tai,
)
from .nrf_client import (
    DISCOVERY_SCOPE,
    MANAGEMENT_SCOPE,
    DiscoverAmfParams,
    NrfClient,
    NrfClientConfig,
    oauth2_required_for,
)
from .repository import SliceRepository

logger = logging.getLogger(__name__)


def supports_all(supported: Iterable[Snssai], required: Iterable[Snssai]) -> bool:
    supported = list(supported)
    return all(snssai in supported for snssai in required)


def rank_amf_profiles(profiles: List[NFProfile]) -> List[NFProfile]:
    return sorted(profiles, key=lambda p: (-(p.priority or 0), -(p.capacity or 0), p.load or 0))


def profile_to_candidate(profile: NFProfile) -> Optional[AmfCandidate]:
    if profile.amfInfo is None or not profile.amfInfo.amfSetId:
        return None
    guamis = profile.amfInfo.guamiList or []
    return AmfCandidate(
        nfInstanceId=profile.nfInstanceId,
        amfSetId=profile.amfInfo.amfSetId,
        guami=guamis[0] if guamis else None,
    )


class AmfSelector:
    """Selects the target AMF set and candidate AMFs for a set of S-NSSAIs"""

    def __init__(self, repository: SliceRepository, nrf_client: Optional[NrfClient] = None, nf_instance_id: str = ""):
        self.repository = repository
        self.nrf_client = nrf_client
        self.nf_instance_id = nf_instance_id

    def _nrf_config(self, amf_set: AmfSetConfig) -> NrfClientConfig:
        return NrfClientConfig(
            nrf_id=amf_set.nrfId or amf_set.nrfNfMgtUri,
            nf_instance_id=self.nf_instance_id,
            nrf_nf_mgt_uri=amf_set.nrfNfMgtUri,
            nrf_access_token_uri=amf_set.nrfAccessTokenUri,
        )

    async def select_amf_set(self, target_snssais: List[Snssai], plmn_id: PlmnId) -> Optional[AmfSetConfig]:
        sets = await self.repository.get_amf_sets(plmn_id)
        compatible = [s for s in sets if supports_all(s.supportedSnssais, target_snssais)]
        if not compatible:
            return None
        compatible.sort(key=lambda s: (-(s.priority or 0), s.capacity or 0))
        return compatible[0]

    async def select_amf_service_set(
        self, target_snssais: List[Snssai], plmn_id: PlmnId, amf_set_id: str
    ) -> Optional[str]:
        service_sets = await self.repository.get_amf_service_sets(amf_set_id, plmn_id)
        compatible = [s for s in service_sets if supports_all(s.supportedSnssais, target_snssais)]
        if not compatible:
            return None
        compatible.sort(key=lambda s: -(s.priority or 0))
        return compatible[0].amfServiceSetId

    async def candidate_amfs(
        self,
        target_snssais: List[Snssai],
        plmn_id: PlmnId,
        amf_set_id: str,
        amf_service_set_id: Optional[str] = None,
    ) -> List[AmfCandidate]:
        instances = await self.repository.get_amf_instances(amf_set_id, plmn_id, amf_service_set_id)
        compatible = [i for i in instances if supports_all(i.supportedSnssais, target_snssais)]
        compatible.sort(key=lambda i: (-(i.capacity or 0), i.loadLevel or 0))
        return [
            AmfCandidate(
                nfInstanceId=i.nfInstanceId,
                amfSetId=i.amfSetId,
                amfServiceSetId=i.amfServiceSetId,
                guami=i.guami,
            )
            for i in compatible
        ]

    async def select(
        self, target_snssais: List[Snssai], plmn_id: PlmnId, tai: Optional[Tai] = None
    ) -> Optional[AmfSelectionResult]:
        """Full reselection; None when no AMF set supports the S-NSSAIs"""
        amf_set = await self.select_amf_set(target_snssais, plmn_id)
        if amf_set is None:
            logger.info(f"No AMF set in PLMN {plmn_id.mcc}-{plmn_id.mnc} supports {len(target_snssais)} S-NSSAI(s)")
            return None

        service_set_id = await self.select_amf_service_set(target_snssais, plmn_id, amf_set.amfSetId)
        candidates = await self.candidate_amfs(target_snssais, plmn_id, amf_set.amfSetId, service_set_id)

        if not candidates and amf_set.nrfNfMgtUri and self.nrf_client is not None:
            candidates = await self.discover_via_nrf(
                amf_set, target_snssais, plmn_id, tai, amf_region_id=amf_set.amfRegionId
            )

        logger.info(f"Selected AMF set {amf_set.amfSetId} with {len(candidates)} candidate(s)")
        return AmfSelectionResult(
            targetAmfSet=amf_set.amfSetId,
            targetAmfServiceSet=service_set_id,
            candidateAmfList=candidates,
            nrfAmfSet=amf_set.nrfId,
            nrfAmfSetNfMgtUri=amf_set.nrfNfMgtUri,
            nrfAmfSetAccessTokenUri=amf_set.nrfAccessTokenUri,
            nrfOauth2Required=amf_set.nrfOauth2Required,
            amfRegionId=amf_set.amfRegionId,
        )

    async def discover_via_nrf(
        self,
        amf_set: AmfSetConfig,
        target_snssais: List[Snssai],
        plmn_id: PlmnId,
        tai: Optional[Tai] = None,
        amf_region_id: Optional[str] = None,
        target_nsi_list: Optional[List[str]] = None,
    ) -> List[AmfCandidate]:
        """Registered AMF profiles from the set's NRF, ranked and converted to candidates"""
        if self.nrf_client is None or not amf_set.nrfNfMgtUri:
            return []

        config = self._nrf_config(amf_set)
        params = DiscoverAmfParams(
            target_plmn_list=[plmn_id],
            target_snssai_list=target_snssais,
            tai_list=[tai] if tai else None,
            amf_set_id=amf_set.amfSetId,
            amf_region_id=amf_region_id,
            target_nsi_list=target_nsi_list,
        )
        profiles = await self.nrf_client.discover_amf_instances(
            config, params, oauth2_required_for(amf_set.nrfOauth2Required, DISCOVERY_SCOPE)
        )

        active = [p for p in profiles if p.nfStatus == NfStatus.REGISTERED.value and p.amfInfo is not None]
        candidates = [profile_to_candidate(p) for p in rank_amf_profiles(active)]
        return [c for c in candidates if c is not None]

    async def get_amf_profile(self, amf_set: AmfSetConfig, nf_instance_id: str) -> Optional[NFProfile]:
        if self.nrf_client is None or not amf_set.nrfNfMgtUri:
            return None
        config = self._nrf_config(amf_set)
        return await self.nrf_client.get_nf_profile(
            config, nf_instance_id, oauth2_required_for(amf_set.nrfOauth2Required, MANAGEMENT_SCOPE)
        )
