"""
Tests for the slice selection engine: registration, PDU session and
UE configuration update flows.
"""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent))
from conftest import (
    EMBB,
    EMBB_NO_SD,
    FIXED_TIME,
    HOME_PLMN,
    MIOT,
    TAI_1,
    TAI_2,
    URLLC,
    VISITED_PLMN,
    VISITED_TAI,
    add_slices,
    make_context,
    make_subscription,
    run,
)

from slice_selection.admission import AdmissionAccounting, AdmissionController
from slice_selection.engine import SelectionEngine
from slice_selection.errors import DatabaseError, SelectionError
from slice_selection.mapping import MappingResolver
from slice_selection.models import (
    AdmissionGroupKind,
    AmfInstanceConfig,
    AmfSetConfig,
    MappingOfSnssai,
    NsagConfiguration,
    NsiConfiguration,
    RoamingIndication,
    SliceConfiguration,
    SliceInfoForPduSession,
    SliceInfoForRegistration,
    SliceInfoForUeConfigurationUpdate,
    SlicePolicy,
    Snssai,
    SnssaiMapping,
)
from slice_selection.policy import PolicyEvaluator
from slice_selection.repository import SliceRepository

VISITED_EMBB = Snssai(sst=1, sd="000001")
HOME_EMBB = Snssai(sst=1, sd="aabbcc")


def registration(**kwargs) -> SliceInfoForRegistration:
    return SliceInfoForRegistration(**kwargs)


class CountingMappingResolver(MappingResolver):
    def __init__(self, repository):
        super().__init__(repository)
        self.batches = 0

    async def resolve_batch(self, *args, **kwargs):
        self.batches += 1
        return await super().resolve_batch(*args, **kwargs)


def roaming_engine(repository, indication) -> SelectionEngine:
    return SelectionEngine(repository, roaming_indication=indication, clock=lambda: FIXED_TIME)


def add_mapping(repository, serving, home):
    return run(repository.create_mapping(SnssaiMapping(
        servingPlmnId=VISITED_PLMN, homePlmnId=HOME_PLMN, servingSnssai=serving, homeSnssai=home
    )))


def classified(result):
    return (
        result.allowed_snssais(),
        result.rejectedNssaiInPlmn or [],
        result.rejectedNssaiInTa or [],
    )


@pytest.mark.engine
class TestRegistration:

    def test_default_slice_end_to_end(self, repository, engine):
        default = Snssai(sst=1, sd="ABCDEF")
        run(repository.add_subscription(make_subscription(default, default=[default])))
        run(add_slices(repository, default))
        run(repository.add_policy(SlicePolicy(policyId="p-1", snssai=default, plmnId=HOME_PLMN)))

        result = run(engine.select_for_registration(registration(), make_context()))
        payload = result.to_payload()

        assert payload["allowedNssaiList"] == [{
            "allowedSnssaiList": [{"allowedSnssai": {"sst": 1, "sd": "ABCDEF"}}],
            "accessType": "3GPP_ACCESS",
        }]
        assert payload["configuredNssai"] == [{"configuredSnssai": {"sst": 1, "sd": "ABCDEF"}}]
        assert "rejectedNssaiInPlmn" not in payload
        assert "rejectedNssaiInTa" not in payload
        assert "targetAmfSet" not in payload

    def test_every_candidate_lands_in_exactly_one_list(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB, URLLC, MIOT)))
        run(add_slices(repository, EMBB))
        run(add_slices(repository, URLLC, tai_list=[TAI_2]))

        requested = [EMBB, URLLC, MIOT, EMBB_NO_SD]
        allowed, in_plmn, in_ta = classified(
            run(engine.select_for_registration(registration(requestedNssai=requested), make_context()))
        )
        assert allowed == [EMBB]
        assert in_ta == [URLLC]
        assert in_plmn == [MIOT, EMBB_NO_SD]
        assert sorted(allowed + in_plmn + in_ta, key=str) == sorted(requested, key=str)

    def test_identical_input_gives_identical_output(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB, URLLC, default=[EMBB])))
        run(add_slices(repository, EMBB, URLLC))
        run(repository.add_nsi(NsiConfiguration(nsiId="nsi-1", snssai=EMBB, plmnId=HOME_PLMN, nrfId="nrf-1")))
        info = registration(requestedNssai=[URLLC, EMBB, MIOT])

        first = json.dumps(run(engine.select_for_registration(info, make_context())).to_payload())
        second = json.dumps(run(engine.select_for_registration(info, make_context())).to_payload())
        assert first == second

    def test_allowed_order_follows_request(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB, URLLC, MIOT)))
        run(add_slices(repository, EMBB, URLLC, MIOT))
        result = run(engine.select_for_registration(registration(requestedNssai=[MIOT, EMBB, URLLC]), make_context()))
        assert result.allowed_snssais() == [MIOT, EMBB, URLLC]

    def test_duplicate_requests_are_collapsed(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB)))
        run(add_slices(repository, EMBB))
        result = run(engine.select_for_registration(registration(requestedNssai=[EMBB, EMBB]), make_context()))
        assert result.allowed_snssais() == [EMBB]

    def test_no_subscription_rejects_everything_requested(self, engine):
        result = run(engine.select_for_registration(registration(requestedNssai=[EMBB, URLLC]), make_context()))
        assert result.allowedNssaiList is None
        assert result.configuredNssai is None
        assert result.rejectedNssaiInPlmn == [EMBB, URLLC]

    def test_no_subscription_without_request(self, engine):
        payload = run(engine.select_for_registration(registration(), make_context())).to_payload()
        assert payload == {}

    def test_unsubscribed_snssai_not_considered_without_request(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB)))
        run(add_slices(repository, EMBB, URLLC))
        allowed, in_plmn, _ = classified(run(engine.select_for_registration(registration(), make_context())))
        assert allowed == [EMBB]
        assert in_plmn == []

    def test_policy_denial_rejects_in_plmn(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB, URLLC)))
        run(add_slices(repository, EMBB, URLLC))
        run(repository.add_policy(SlicePolicy(policyId="p-1", snssai=EMBB, plmnId=HOME_PLMN, deniedTaiList=[TAI_1])))
        allowed, in_plmn, in_ta = classified(
            run(engine.select_for_registration(registration(requestedNssai=[EMBB, URLLC]), make_context()))
        )
        assert allowed == [URLLC]
        assert in_plmn == [EMBB]
        assert in_ta == []

    def test_policy_time_window_uses_engine_clock(self, repository):
        run(repository.add_subscription(make_subscription(URLLC)))
        run(add_slices(repository, URLLC))
        run(repository.add_policy(SlicePolicy(
            policyId="maintenance",
            snssai=URLLC,
            plmnId=HOME_PLMN,
            deniedTimeWindows=[{"startTime": "02:00", "endTime": "03:00"}],
        )))
        at_night = SelectionEngine(repository, clock=lambda: FIXED_TIME.replace(hour=2, minute=30))
        by_day = SelectionEngine(repository, clock=lambda: FIXED_TIME)
        info = registration(requestedNssai=[URLLC])
        assert run(at_night.select_for_registration(info, make_context())).rejectedNssaiInPlmn == [URLLC]
        assert run(by_day.select_for_registration(info, make_context())).allowed_snssais() == [URLLC]

    def test_default_configured_indication(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB, URLLC, default=[URLLC])))
        run(add_slices(repository, EMBB, URLLC))
        result = run(engine.select_for_registration(registration(defaultConfiguredSnssaiInd=True), make_context()))
        assert result.allowed_snssais() == [URLLC]
        assert [c.configuredSnssai for c in result.configuredNssai] == [URLLC]

    def test_configured_nssai_skips_unavailable_slices(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB, URLLC, MIOT)))
        run(add_slices(repository, EMBB))
        run(add_slices(repository, URLLC, tai_list=[TAI_2]))
        result = run(engine.select_for_registration(registration(requestedNssai=[EMBB]), make_context()))
        assert [c.configuredSnssai for c in result.configuredNssai] == [EMBB]

    def test_nsi_information_attached(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB, URLLC)))
        run(add_slices(repository, EMBB, URLLC))
        run(repository.add_nsi(NsiConfiguration(nsiId="nsi-a", snssai=EMBB, plmnId=HOME_PLMN, nrfId="nrf", priority=1)))
        run(repository.add_nsi(NsiConfiguration(nsiId="nsi-b", snssai=EMBB, plmnId=HOME_PLMN, nrfId="nrf", priority=2)))
        result = run(engine.select_for_registration(registration(requestedNssai=[EMBB, URLLC]), make_context()))
        embb, urllc = result.allowedNssaiList[0].allowedSnssaiList
        assert [n.nsiId for n in embb.nsiInformationList] == ["nsi-b", "nsi-a"]
        assert urllc.nsiInformationList is None

    def test_amf_reselection_when_nothing_allowed(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB)))
        run(add_slices(repository, EMBB))
        run(repository.add_amf_set(AmfSetConfig(
            amfSetId="set-urllc", plmnId=HOME_PLMN, supportedSnssais=[URLLC], nrfId="nrf-amf"
        )))
        run(repository.add_amf_instance(AmfInstanceConfig(
            nfInstanceId="amf-urllc-1", amfSetId="set-urllc", plmnId=HOME_PLMN, supportedSnssais=[URLLC]
        )))
        result = run(engine.select_for_registration(registration(requestedNssai=[URLLC]), make_context()))
        assert result.allowedNssaiList is None
        assert result.rejectedNssaiInPlmn == [URLLC]
        assert result.targetAmfSet == "set-urllc"
        assert result.candidateAmfList == ["amf-urllc-1"]
        assert result.nrfAmfSet == "nrf-amf"

    def test_no_amf_reselection_when_something_allowed(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB)))
        run(add_slices(repository, EMBB))
        run(repository.add_amf_set(AmfSetConfig(amfSetId="set-1", plmnId=HOME_PLMN, supportedSnssais=[EMBB, URLLC])))
        result = run(engine.select_for_registration(registration(requestedNssai=[EMBB, URLLC]), make_context()))
        assert result.targetAmfSet is None

    def test_requested_mapping(self, repository):
        engine = roaming_engine(repository, RoamingIndication.HOME_ROUTED_ROAMING)
        run(repository.add_subscription(make_subscription(EMBB)))
        add_mapping(repository, VISITED_EMBB, HOME_EMBB)
        info = registration(requestMapping=True, sNssaiForMapping=[VISITED_EMBB, MIOT])
        result = run(engine.select_for_registration(info, make_context(tai=VISITED_TAI)))
        assert result.mappingOfNssai == [MappingOfSnssai(servingSnssai=VISITED_EMBB, homeSnssai=HOME_EMBB)]

    def test_mapping_not_resolved_without_request_flag(self, repository, engine):
        add_mapping(repository, VISITED_EMBB, HOME_EMBB)
        info = registration(sNssaiForMapping=[VISITED_EMBB])
        assert run(engine.select_for_registration(info, make_context(tai=VISITED_TAI))).mappingOfNssai is None

    def test_mapping_skipped_without_subscription(self, repository):
        resolver = CountingMappingResolver(repository)
        engine = SelectionEngine(
            repository, mapping_resolver=resolver, roaming_indication=RoamingIndication.HOME_ROUTED_ROAMING
        )
        add_mapping(repository, VISITED_EMBB, HOME_EMBB)
        info = registration(requestMapping=True, sNssaiForMapping=[VISITED_EMBB], requestedNssai=[EMBB])
        result = run(engine.select_for_registration(info, make_context(tai=VISITED_TAI)))
        assert result.rejectedNssaiInPlmn == [EMBB]
        assert result.mappingOfNssai is None
        assert resolver.batches == 0


@pytest.mark.engine
class TestRoaming:

    def test_home_routed_mapping_absence_is_not_rejection(self, repository):
        engine = roaming_engine(repository, RoamingIndication.HOME_ROUTED_ROAMING)
        run(repository.add_subscription(make_subscription(EMBB, URLLC)))
        run(add_slices(repository, EMBB, URLLC))
        add_mapping(repository, EMBB, HOME_EMBB)

        result = run(engine.select_for_registration(
            registration(requestedNssai=[EMBB, URLLC]), make_context(tai=VISITED_TAI)
        ))
        entries = result.to_payload()["allowedNssaiList"][0]["allowedSnssaiList"]
        assert entries[0]["mappedHomeSnssai"] == {"sst": 1, "sd": "aabbcc"}
        assert entries[1] == {"allowedSnssai": {"sst": 2, "sd": "010203"}}
        assert result.rejectedNssaiInPlmn is None
        assert result.rejectedNssaiInTa is None

    def test_home_routed_uses_home_slice_catalog(self, repository):
        engine = roaming_engine(repository, RoamingIndication.HOME_ROUTED_ROAMING)
        run(repository.add_subscription(make_subscription(EMBB, URLLC)))
        run(add_slices(repository, EMBB))
        run(add_slices(repository, URLLC, plmn=VISITED_PLMN))
        allowed, in_plmn, _ = classified(run(engine.select_for_registration(
            registration(requestedNssai=[EMBB, URLLC]), make_context(tai=VISITED_TAI)
        )))
        assert allowed == [EMBB]
        assert in_plmn == [URLLC]

    def test_local_breakout_uses_visited_slice_catalog(self, repository):
        engine = roaming_engine(repository, RoamingIndication.LOCAL_BREAKOUT)
        run(repository.add_subscription(make_subscription(EMBB, URLLC)))
        run(add_slices(repository, EMBB, plmn=VISITED_PLMN))
        run(add_slices(repository, URLLC))
        result = run(engine.select_for_registration(
            registration(requestedNssai=[EMBB, URLLC]), make_context(tai=VISITED_TAI)
        ))
        assert result.allowed_snssais() == [EMBB]
        assert result.rejectedNssaiInPlmn == [URLLC]
        assert result.allowedNssaiList[0].allowedSnssaiList[0].mappedHomeSnssai is None

    def test_local_breakout_configured_maps_to_itself(self, repository):
        engine = roaming_engine(repository, RoamingIndication.LOCAL_BREAKOUT)
        run(repository.add_subscription(make_subscription(EMBB)))
        run(add_slices(repository, EMBB, plmn=VISITED_PLMN))
        result = run(engine.select_for_registration(registration(), make_context(tai=VISITED_TAI)))
        configured, = result.configuredNssai
        assert configured.configuredSnssai == EMBB
        assert configured.mappedHomeSnssai == EMBB

    def test_non_roaming_has_no_mapped_fields(self, repository):
        engine = roaming_engine(repository, RoamingIndication.HOME_ROUTED_ROAMING)
        run(repository.add_subscription(make_subscription(EMBB)))
        run(add_slices(repository, EMBB))
        add_mapping(repository, EMBB, HOME_EMBB)
        payload = run(engine.select_for_registration(registration(), make_context())).to_payload()
        assert "mappedHomeSnssai" not in json.dumps(payload)


@pytest.mark.engine
class TestUeConfigurationUpdate:

    def test_ran_rejected_snssai(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB, URLLC)))
        run(add_slices(repository, EMBB, URLLC))
        info = SliceInfoForUeConfigurationUpdate(requestedNssai=[EMBB, URLLC], rejectedNssaiRa=[EMBB])
        allowed, in_plmn, in_ta = classified(run(engine.select_for_ue_configuration_update(info, make_context())))
        assert allowed == [URLLC]
        assert in_plmn == [EMBB]
        assert in_ta == []

    def test_ran_rejection_applies_to_subscribed_candidates(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB, URLLC)))
        run(add_slices(repository, EMBB, URLLC))
        info = SliceInfoForUeConfigurationUpdate(rejectedNssaiRa=[URLLC])
        result = run(engine.select_for_ue_configuration_update(info, make_context()))
        assert result.allowed_snssais() == [EMBB]
        assert result.rejectedNssaiInPlmn == [URLLC]

    def test_mapping_passthrough(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB)))
        run(add_slices(repository, EMBB))
        mapping = [MappingOfSnssai(servingSnssai=VISITED_EMBB, homeSnssai=HOME_EMBB)]
        info = SliceInfoForUeConfigurationUpdate(mappingOfNssai=mapping)
        assert run(engine.select_for_ue_configuration_update(info, make_context())).mappingOfNssai == mapping


@pytest.mark.engine
class TestPduSession:

    def test_non_roaming_with_nsi(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB)))
        run(add_slices(repository, EMBB))
        run(repository.add_nsi(NsiConfiguration(nsiId="nsi-low", snssai=EMBB, plmnId=HOME_PLMN, nrfId="n", priority=1)))
        run(repository.add_nsi(NsiConfiguration(nsiId="nsi-top", snssai=EMBB, plmnId=HOME_PLMN, nrfId="n", priority=9)))
        info = SliceInfoForPduSession(sNssai=EMBB, roamingIndication=RoamingIndication.NON_ROAMING)
        result = run(engine.select_for_pdu_session(info, make_context()))
        assert result.allowed_snssais() == [EMBB]
        assert result.nsiInformation.nsiId == "nsi-top"
        assert result.configuredNssai is None

    def test_unsubscribed(self, repository, engine):
        run(repository.add_subscription(make_subscription(URLLC)))
        run(add_slices(repository, EMBB, URLLC))
        info = SliceInfoForPduSession(sNssai=EMBB, roamingIndication=RoamingIndication.NON_ROAMING)
        result = run(engine.select_for_pdu_session(info, make_context()))
        assert result.allowedNssaiList is None
        assert result.rejectedNssaiInPlmn == [EMBB]

    def test_no_subscription(self, engine):
        info = SliceInfoForPduSession(sNssai=EMBB, roamingIndication=RoamingIndication.NON_ROAMING)
        assert run(engine.select_for_pdu_session(info, make_context())).rejectedNssaiInPlmn == [EMBB]

    def test_not_available_in_ta(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB)))
        run(add_slices(repository, EMBB, tai_list=[TAI_2]))
        info = SliceInfoForPduSession(sNssai=EMBB, roamingIndication=RoamingIndication.NON_ROAMING)
        result = run(engine.select_for_pdu_session(info, make_context(tai=TAI_1)))
        assert result.rejectedNssaiInTa == [EMBB]
        assert result.rejectedNssaiInPlmn is None

    def test_home_routed_checks_home_snssai(self, repository, engine):
        run(repository.add_subscription(make_subscription(HOME_EMBB)))
        run(add_slices(repository, HOME_EMBB))
        info = SliceInfoForPduSession(
            sNssai=VISITED_EMBB, roamingIndication=RoamingIndication.HOME_ROUTED_ROAMING, homeSnssai=HOME_EMBB
        )
        result = run(engine.select_for_pdu_session(info, make_context(tai=VISITED_TAI)))
        allowed, = result.allowedNssaiList[0].allowedSnssaiList
        assert allowed.allowedSnssai == VISITED_EMBB
        assert allowed.mappedHomeSnssai == HOME_EMBB

    def test_home_routed_rejection_reports_requested_snssai(self, repository, engine):
        run(repository.add_subscription(make_subscription(EMBB)))
        run(add_slices(repository, HOME_EMBB))
        info = SliceInfoForPduSession(
            sNssai=VISITED_EMBB, roamingIndication=RoamingIndication.HOME_ROUTED_ROAMING, homeSnssai=HOME_EMBB
        )
        result = run(engine.select_for_pdu_session(info, make_context(tai=VISITED_TAI)))
        assert result.rejectedNssaiInPlmn == [VISITED_EMBB]

    def test_local_breakout_resolves_mapping(self, repository, engine):
        run(repository.add_subscription(make_subscription(VISITED_EMBB)))
        run(add_slices(repository, VISITED_EMBB, plmn=VISITED_PLMN))
        add_mapping(repository, VISITED_EMBB, HOME_EMBB)
        info = SliceInfoForPduSession(sNssai=VISITED_EMBB, roamingIndication=RoamingIndication.LOCAL_BREAKOUT)
        result = run(engine.select_for_pdu_session(info, make_context(tai=VISITED_TAI)))
        allowed, = result.allowedNssaiList[0].allowedSnssaiList
        assert allowed.mappedHomeSnssai == HOME_EMBB

    def test_local_breakout_without_mapping(self, repository, engine):
        run(repository.add_subscription(make_subscription(VISITED_EMBB)))
        run(add_slices(repository, VISITED_EMBB, plmn=VISITED_PLMN))
        info = SliceInfoForPduSession(sNssai=VISITED_EMBB, roamingIndication=RoamingIndication.LOCAL_BREAKOUT)
        result = run(engine.select_for_pdu_session(info, make_context(tai=VISITED_TAI)))
        assert result.allowed_snssais() == [VISITED_EMBB]
        assert result.allowedNssaiList[0].allowedSnssaiList[0].mappedHomeSnssai is None


class FailingPolicyEvaluator(PolicyEvaluator):
    async def evaluate(self, *args, **kwargs):
        raise RuntimeError("policy store corrupted")


class UnreachableRepository(SliceRepository):
    async def get_subscription(self, supi, plmn_id):
        raise DatabaseError("Database operation failed: no servers", is_connection_error=True)


@pytest.mark.engine
class TestFailures:

    def test_unexpected_error_is_wrapped(self, repository):
        run(repository.add_subscription(make_subscription(EMBB)))
        run(add_slices(repository, EMBB))
        engine = SelectionEngine(repository, policy_evaluator=FailingPolicyEvaluator(repository))
        with pytest.raises(SelectionError) as excinfo:
            run(engine.select_for_registration(registration(), make_context()))
        assert isinstance(excinfo.value.original_error, RuntimeError)

    def test_store_errors_pass_through(self, database):
        engine = SelectionEngine(UnreachableRepository(database))
        with pytest.raises(DatabaseError) as excinfo:
            run(engine.select_for_registration(registration(requestedNssai=[EMBB]), make_context()))
        assert excinfo.value.is_connection_error


@pytest.mark.engine
class TestAdmissionHook:

    def test_accepted_snssais_are_accounted(self, repository):
        controller = AdmissionController(repository)
        engine = SelectionEngine(
            repository, admission_hook=AdmissionAccounting(controller), clock=lambda: FIXED_TIME
        )
        run(repository.add_subscription(make_subscription(EMBB)))
        run(add_slices(repository, EMBB))
        run(repository.add_nsag(NsagConfiguration(nsagId=1, snssaiList=[EMBB], plmnId=HOME_PLMN, maxUeCount=1)))

        first = run(engine.select_for_registration(registration(), make_context()))
        second = run(engine.select_for_registration(registration(), make_context()))
        # accounting never changes the decision
        assert first.allowed_snssais() == second.allowed_snssais() == [EMBB]
        group = run(controller.get_group_for_snssai(AdmissionGroupKind.NSAG, EMBB, HOME_PLMN))
        assert group.currentUeCount == 1

    def test_pdu_session_is_accounted(self, repository):
        controller = AdmissionController(repository)
        engine = SelectionEngine(repository, admission_hook=AdmissionAccounting(controller))
        run(repository.add_subscription(make_subscription(EMBB)))
        run(repository.add_slice(SliceConfiguration(snssai=EMBB, plmnId=HOME_PLMN)))
        run(repository.add_nsag(NsagConfiguration(nsagId=4, snssaiList=[EMBB], plmnId=HOME_PLMN)))
        info = SliceInfoForPduSession(sNssai=EMBB, roamingIndication=RoamingIndication.NON_ROAMING)
        run(engine.select_for_pdu_session(info, make_context()))
        group = run(controller.get_group_for_snssai(AdmissionGroupKind.NSAG, EMBB, HOME_PLMN))
        assert group.currentUeCount == 1

    def test_home_routed_pdu_session_counts_home_snssai(self, repository):
        controller = AdmissionController(repository)
        engine = SelectionEngine(repository, admission_hook=AdmissionAccounting(controller))
        run(repository.add_subscription(make_subscription(HOME_EMBB)))
        run(add_slices(repository, HOME_EMBB))
        run(repository.add_nsag(NsagConfiguration(nsagId=8, snssaiList=[HOME_EMBB], plmnId=HOME_PLMN, maxUeCount=5)))
        info = SliceInfoForPduSession(
            sNssai=VISITED_EMBB, roamingIndication=RoamingIndication.HOME_ROUTED_ROAMING, homeSnssai=HOME_EMBB
        )
        result = run(engine.select_for_pdu_session(info, make_context(tai=VISITED_TAI)))
        assert result.allowed_snssais() == [VISITED_EMBB]
        group = run(controller.get_group_for_snssai(AdmissionGroupKind.NSAG, HOME_EMBB, HOME_PLMN))
        assert group.currentUeCount == 1


def test_supi_is_used_for_subscription_lookup(repository, engine):
    run(repository.add_subscription(make_subscription(EMBB, supi="imsi-001019999999999")))
    run(add_slices(repository, EMBB))
    result = run(engine.select_for_registration(registration(requestedNssai=[EMBB]), make_context()))
    assert result.rejectedNssaiInPlmn == [EMBB]
