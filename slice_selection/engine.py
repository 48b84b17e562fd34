# File location: nssf/slice_selection/engine.py
# Network Slice Selection Engine - Nnssf_NSSelection decision logic (3GPP TS 29.531)

"""
Selection Engine

Computes the AuthorizedNetworkSliceInfo for three request flows:

- registration (slice-info-request-for-registration)
- PDU session establishment (slice-info-request-for-pdu-session)
- UE configuration update (slice-info-request-for-ue-cu)

All three share one classification routine. Every candidate S-NSSAI ends
up in exactly one of allowed, rejected in PLMN or rejected in TA. A
rejection is a normal outcome; only store and NRF failures raise.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from config import settings
from .admission import AdmissionHook
from .amf_selection import AmfSelector
from .errors import NssfError, SelectionError
from .mapping import MappingResolver
from .models import (
    AllowedSnssai,
    AuthorizedNetworkSliceInfo,
    ConfiguredSnssai,
    MappingOfSnssai,
    PlmnId,
    RoamingIndication,
    SelectionContext,
    SliceConfiguration,
    SliceInfoForPduSession,
    SliceInfoForRegistration,
    SliceInfoForUeConfigurationUpdate,
    Snssai,
    Tai,
    UeSubscription,
)
from .nrf_client import NrfClient
from .nsi_selection import NsiSelector
from .policy import PolicyEvaluator
from .repository import SliceRepository
from .validation import process_requested_nssai

logger = logging.getLogger(__name__)


@dataclass
class Classification:
    accepted: List[Snssai] = field(default_factory=list)
    rejected_in_plmn: List[Snssai] = field(default_factory=list)
    rejected_in_ta: List[Snssai] = field(default_factory=list)


@dataclass
class RoamingState:
    """Roaming mode of one request and the PLMN whose slice catalog applies"""
    indication: RoamingIndication
    serving_plmn: PlmnId
    home_plmn: PlmnId
    target_plmn: PlmnId

    @property
    def home_routed(self) -> bool:
        return self.indication == RoamingIndication.HOME_ROUTED_ROAMING

    @property
    def local_breakout(self) -> bool:
        return self.indication == RoamingIndication.LOCAL_BREAKOUT


def _find_slice(slices: List[SliceConfiguration], snssai: Snssai, plmn_id: PlmnId) -> Optional[SliceConfiguration]:
    for slice_config in slices:
        if slice_config.snssai == snssai and slice_config.plmnId == plmn_id:
            return slice_config
    return None


class SelectionEngine:
    """Network slice selection for registration, PDU session and UE configuration update"""

    def __init__(
        self,
        repository: SliceRepository,
        policy_evaluator: Optional[PolicyEvaluator] = None,
        mapping_resolver: Optional[MappingResolver] = None,
        nsi_selector: Optional[NsiSelector] = None,
        amf_selector: Optional[AmfSelector] = None,
        nrf_client: Optional[NrfClient] = None,
        roaming_indication: RoamingIndication = RoamingIndication(settings.NSSF_ROAMING_INDICATION),
        admission_hook: Optional[AdmissionHook] = None,
        clock: Callable[[], datetime] = datetime.now,
        nf_instance_id: str = "",
    ):
        self.repository = repository
        self.policy_evaluator = policy_evaluator or PolicyEvaluator(repository)
        self.mapping_resolver = mapping_resolver or MappingResolver(repository)
        self.nsi_selector = nsi_selector or NsiSelector(repository)
        self.amf_selector = amf_selector or AmfSelector(repository, nrf_client, nf_instance_id)
        self.roaming_indication = roaming_indication
        self.admission_hook = admission_hook
        self.clock = clock

    # ------------------------------------------------------------------
    # Public flows
    # ------------------------------------------------------------------

    async def select_for_registration(
        self, info: SliceInfoForRegistration, context: SelectionContext
    ) -> AuthorizedNetworkSliceInfo:
        return await self._guarded("registration", self._registration(info, context))

    async def select_for_pdu_session(
        self, info: SliceInfoForPduSession, context: SelectionContext
    ) -> AuthorizedNetworkSliceInfo:
        return await self._guarded("PDU session", self._pdu_session(info, context))

    async def select_for_ue_configuration_update(
        self, info: SliceInfoForUeConfigurationUpdate, context: SelectionContext
    ) -> AuthorizedNetworkSliceInfo:
        return await self._guarded("UE configuration update", self._ue_configuration_update(info, context))

    async def _guarded(self, flow: str, coro) -> AuthorizedNetworkSliceInfo:
        try:
            return await coro
        except NssfError:
            raise
        except Exception as e:
            logger.error(f"Slice selection for {flow} failed: {e}")
            raise SelectionError(f"Slice selection for {flow} failed: {e}", e) from e

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    def _roaming_state(self, context: SelectionContext, indication: Optional[RoamingIndication] = None) -> RoamingState:
        if indication is None:
            indication = self.roaming_indication if context.is_roaming else RoamingIndication.NON_ROAMING
        serving = context.serving_plmn
        target = serving if indication == RoamingIndication.LOCAL_BREAKOUT else context.homePlmnId
        return RoamingState(
            indication=indication,
            serving_plmn=serving,
            home_plmn=context.homePlmnId,
            target_plmn=target,
        )

    async def _registration(
        self, info: SliceInfoForRegistration, context: SelectionContext
    ) -> AuthorizedNetworkSliceInfo:
        roaming = self._roaming_state(context)
        result = await self._select_list(
            context,
            roaming,
            requested=info.requestedNssai,
            default_configured=info.defaultConfiguredSnssaiInd,
            snssais_for_mapping=info.sNssaiForMapping if info.requestMapping else None,
        )
        logger.info(f"Registration slice selection for {context.supi}: "
                    f"{len(result.allowed_snssais())} allowed ({roaming.indication.value})")
        return result

    async def _ue_configuration_update(
        self, info: SliceInfoForUeConfigurationUpdate, context: SelectionContext
    ) -> AuthorizedNetworkSliceInfo:
        roaming = self._roaming_state(context)
        result = await self._select_list(
            context,
            roaming,
            requested=info.requestedNssai,
            default_configured=info.defaultConfiguredSnssaiInd,
            ran_rejected=info.rejectedNssaiRa or [],
            mappings=info.mappingOfNssai,
        )
        logger.info(f"UE configuration update slice selection for {context.supi}: "
                    f"{len(result.allowed_snssais())} allowed")
        return result

    async def _pdu_session(
        self, info: SliceInfoForPduSession, context: SelectionContext
    ) -> AuthorizedNetworkSliceInfo:
        roaming = self._roaming_state(context, info.roamingIndication)
        requested = info.sNssai
        home_routed = roaming.home_routed and info.homeSnssai is not None
        checked = info.homeSnssai if home_routed else requested

        subscription = await self.repository.get_subscription(context.supi, roaming.home_plmn)
        if subscription is None:
            logger.info(f"No subscription for {context.supi}, rejecting PDU session S-NSSAI")
            return AuthorizedNetworkSliceInfo.build(rejected_in_plmn=[requested])

        slices = await self.repository.list_slices()
        outcome = await self._classify([checked], subscription, slices, roaming.target_plmn, context.tai,
                                       explicit_request=True)
        if outcome.rejected_in_plmn:
            return AuthorizedNetworkSliceInfo.build(rejected_in_plmn=[requested])
        if outcome.rejected_in_ta:
            return AuthorizedNetworkSliceInfo.build(rejected_in_ta=[requested])

        nsi_list = await self.nsi_selector.select(checked, roaming.target_plmn, context.tai)
        mapped = None
        if home_routed:
            mapped = info.homeSnssai
        elif roaming.local_breakout:
            mapped = await self.mapping_resolver.get_home_snssai(
                requested, roaming.serving_plmn, roaming.home_plmn, context.tai
            )

        allowed = AllowedSnssai(allowedSnssai=requested, nsiInformationList=nsi_list or None, mappedHomeSnssai=mapped)
        await self._notify_admission([checked], roaming.target_plmn, context.tai)
        logger.info(f"PDU session S-NSSAI {requested} allowed for {context.supi}")
        return AuthorizedNetworkSliceInfo.build(
            allowed=[allowed],
            nsi_information=nsi_list[0] if nsi_list else None,
        )

    # ------------------------------------------------------------------
    # Shared classification
    # ------------------------------------------------------------------

    async def _select_list(
        self,
        context: SelectionContext,
        roaming: RoamingState,
        requested: Optional[List[Snssai]],
        default_configured: bool,
        ran_rejected: Sequence[Snssai] = (),
        mappings: Optional[List[MappingOfSnssai]] = None,
        snssais_for_mapping: Optional[List[Snssai]] = None,
    ) -> AuthorizedNetworkSliceInfo:
        requested = process_requested_nssai(requested)

        subscription = await self.repository.get_subscription(context.supi, roaming.home_plmn)
        if subscription is None:
            logger.info(f"No subscription for {context.supi}, rejecting {len(requested)} requested S-NSSAI(s)")
            return AuthorizedNetworkSliceInfo.build(rejected_in_plmn=requested)

        if snssais_for_mapping:
            mappings = await self.mapping_resolver.resolve_batch(
                snssais_for_mapping, roaming.serving_plmn, roaming.home_plmn, context.tai
            )

        if default_configured and not requested:
            candidates = [s.subscribedSnssai for s in subscription.subscribedSnssais if s.defaultIndication]
        elif requested:
            candidates = requested
        else:
            candidates = [s.subscribedSnssai for s in subscription.subscribedSnssais]

        slices = await self.repository.list_slices()
        outcome = await self._classify(
            candidates, subscription, slices, roaming.target_plmn, context.tai,
            explicit_request=bool(requested), ran_rejected=ran_rejected,
        )

        allowed = await self._allowed_entries(outcome.accepted, roaming, context.tai)
        configured = await self._configured_nssai(subscription, default_configured, slices, roaming, context.tai)

        amf = None
        if not outcome.accepted and requested:
            amf = await self.amf_selector.select(requested, roaming.target_plmn, context.tai)

        await self._notify_admission(outcome.accepted, roaming.target_plmn, context.tai)
        return AuthorizedNetworkSliceInfo.build(
            allowed=allowed,
            configured=configured,
            rejected_in_plmn=outcome.rejected_in_plmn,
            rejected_in_ta=outcome.rejected_in_ta,
            amf=amf,
            mappings=mappings,
        )

    async def _classify(
        self,
        candidates: List[Snssai],
        subscription: UeSubscription,
        slices: List[SliceConfiguration],
        target_plmn: PlmnId,
        tai: Optional[Tai],
        explicit_request: bool,
        ran_rejected: Sequence[Snssai] = (),
    ) -> Classification:
        outcome = Classification()
        now = self.clock()
        for snssai in candidates:
            if snssai in ran_rejected:
                logger.debug(f"S-NSSAI {snssai} rejected by RAN")
                outcome.rejected_in_plmn.append(snssai)
                continue
            if explicit_request and not subscription.is_subscribed(snssai):
                logger.debug(f"S-NSSAI {snssai} not subscribed")
                outcome.rejected_in_plmn.append(snssai)
                continue
            slice_config = _find_slice(slices, snssai, target_plmn)
            if slice_config is None:
                logger.debug(f"S-NSSAI {snssai} not configured in PLMN {target_plmn.mcc}-{target_plmn.mnc}")
                outcome.rejected_in_plmn.append(snssai)
                continue
            if not slice_config.is_available_in(tai):
                logger.debug(f"S-NSSAI {snssai} not available in TA")
                outcome.rejected_in_ta.append(snssai)
                continue
            policy = await self.policy_evaluator.evaluate(
                snssai, target_plmn, tai, subscription, slice_config, current_time=now
            )
            if not policy.allowed:
                logger.info(f"S-NSSAI {snssai} denied by policy: {'; '.join(policy.reasons)}")
                outcome.rejected_in_plmn.append(snssai)
                continue
            outcome.accepted.append(snssai)
        return outcome

    async def _allowed_entries(
        self, accepted: List[Snssai], roaming: RoamingState, tai: Optional[Tai]
    ) -> List[AllowedSnssai]:
        async def entry(snssai: Snssai) -> AllowedSnssai:
            nsi_list = await self.nsi_selector.select(snssai, roaming.target_plmn, tai)
            mapped = None
            if roaming.home_routed:
                mapped = await self.mapping_resolver.get_home_snssai(
                    snssai, roaming.serving_plmn, roaming.home_plmn, tai
                )
            return AllowedSnssai(allowedSnssai=snssai, nsiInformationList=nsi_list or None, mappedHomeSnssai=mapped)

        return list(await asyncio.gather(*(entry(snssai) for snssai in accepted)))

    async def _configured_nssai(
        self,
        subscription: UeSubscription,
        default_only: bool,
        slices: List[SliceConfiguration],
        roaming: RoamingState,
        tai: Optional[Tai],
    ) -> List[ConfiguredSnssai]:
        entries = [
            s.subscribedSnssai for s in subscription.subscribedSnssais
            if (s.defaultIndication or not default_only)
        ]
        available = []
        for snssai in entries:
            slice_config = _find_slice(slices, snssai, roaming.target_plmn)
            if slice_config is not None and slice_config.is_available_in(tai):
                available.append(snssai)

        async def entry(snssai: Snssai) -> ConfiguredSnssai:
            mapped = None
            if roaming.local_breakout:
                mapped = snssai
            elif roaming.home_routed:
                mapped = await self.mapping_resolver.get_home_snssai(
                    snssai, roaming.serving_plmn, roaming.home_plmn, tai
                )
            return ConfiguredSnssai(configuredSnssai=snssai, mappedHomeSnssai=mapped)

        return list(await asyncio.gather(*(entry(snssai) for snssai in available)))

    async def _notify_admission(self, accepted: List[Snssai], plmn_id: PlmnId, tai: Optional[Tai]):
        if self.admission_hook is None or not accepted:
            return
        await self.admission_hook.on_accepted(accepted, plmn_id, tai)
