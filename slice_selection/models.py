# File location: nssf/slice_selection/models.py
# Data models for Network Slice Selection - 3GPP TS 29.531 / TS 29.510 aligned definitions

from abc import ABC, abstractmethod
from pydantic import BaseModel, Field
from typing import Dict, List, Optional, Union
from enum import Enum


# =============================================================================
# Enumerations
# =============================================================================

class AccessType(str, Enum):
    THREE_GPP_ACCESS = "3GPP_ACCESS"
    NON_3GPP_ACCESS = "NON_3GPP_ACCESS"


class RoamingIndication(str, Enum):
    NON_ROAMING = "NON_ROAMING"
    LOCAL_BREAKOUT = "LOCAL_BREAKOUT"
    HOME_ROUTED_ROAMING = "HOME_ROUTED_ROAMING"


class NfType(str, Enum):
    NRF = "NRF"
    AMF = "AMF"
    SMF = "SMF"
    AUSF = "AUSF"
    NEF = "NEF"
    PCF = "PCF"
    NSSF = "NSSF"
    UDM = "UDM"
    UDR = "UDR"
    BSF = "BSF"
    CHF = "CHF"


class NfStatus(str, Enum):
    REGISTERED = "REGISTERED"
    SUSPENDED = "SUSPENDED"
    UNDISCOVERABLE = "UNDISCOVERABLE"


class AdmissionGroupKind(str, Enum):
    """Admission group families sharing the capacity mechanism"""
    NSAG = "NSAG"
    NSSRG = "NSSRG"


# =============================================================================
# Common Types
# =============================================================================

class PlmnId(BaseModel):
    mcc: str = Field(..., description="Mobile Country Code")
    mnc: str = Field(..., description="Mobile Network Code")

    def __eq__(self, other):
        if not isinstance(other, PlmnId):
            return False
        return self.mcc == other.mcc and self.mnc == other.mnc

    def __hash__(self):
        return hash((self.mcc, self.mnc))


class Snssai(BaseModel):
    sst: int = Field(..., ge=0, le=255, description="Slice/Service Type")
    sd: Optional[str] = Field(None, description="Slice Differentiator (6 hex chars)")

    def __eq__(self, other):
        if not isinstance(other, Snssai):
            return False
        return self.sst == other.sst and self.sd == other.sd

    def __hash__(self):
        return hash((self.sst, self.sd))


class Tai(BaseModel):
    plmnId: PlmnId = Field(..., description="PLMN ID")
    tac: str = Field(..., description="Tracking Area Code")

    def matches(self, other: "Tai") -> bool:
        return self.plmnId == other.plmnId and self.tac == other.tac


class TaiRange(BaseModel):
    plmnId: PlmnId = Field(..., description="PLMN ID")
    start: str = Field(..., pattern=r"^[0-9A-Fa-f]{4,6}$", description="First TAC of the range")
    end: str = Field(..., pattern=r"^[0-9A-Fa-f]{4,6}$", description="Last TAC of the range (inclusive)")

    def contains(self, tai: Tai) -> bool:
        # TACs compare as hex numbers
        if self.plmnId != tai.plmnId:
            return False
        return int(self.start, 16) <= int(tai.tac, 16) <= int(self.end, 16)


class Guami(BaseModel):
    plmnId: PlmnId
    amfId: str


def tai_in_list(tai: Tai, tai_list: Optional[List[Tai]]) -> bool:
    return any(entry.matches(tai) for entry in tai_list or [])


# =============================================================================
# Configuration Entities (read-only during a decision)
# =============================================================================

class SubscribedSnssai(BaseModel):
    subscribedSnssai: Snssai = Field(..., description="Subscribed S-NSSAI")
    defaultIndication: bool = Field(False, description="Default S-NSSAI indication")
    subscribedNsSrgList: Optional[List[str]] = Field(None, description="NSSRG references")


class UeSubscription(BaseModel):
    supi: str
    plmnId: PlmnId
    subscribedSnssais: List[SubscribedSnssai] = Field(default_factory=list)
    defaultSnssai: Optional[Snssai] = None

    def is_subscribed(self, snssai: Snssai) -> bool:
        return any(s.subscribedSnssai == snssai for s in self.subscribedSnssais)


class SliceConfiguration(BaseModel):
    snssai: Snssai
    plmnId: PlmnId
    accessType: AccessType = AccessType.THREE_GPP_ACCESS
    taiList: Optional[List[Tai]] = None
    isDefault: Optional[bool] = None
    priority: Optional[int] = None
    maxUeSupport: Optional[int] = None

    def is_available_in(self, tai: Optional[Tai]) -> bool:
        """Slices without a TAI list are available everywhere in the PLMN"""
        if not self.taiList:
            return True
        return tai is not None and tai_in_list(tai, self.taiList)


# Zero-padded 24h clock, so windows compare as strings
HHMM_PATTERN = r"^([01][0-9]|2[0-3]):[0-5][0-9]$"


class TimeWindow(BaseModel):
    startTime: str = Field(..., pattern=HHMM_PATTERN, description="Window start, HH:MM")
    endTime: str = Field(..., pattern=HHMM_PATTERN, description="Window end, HH:MM (inclusive)")
    daysOfWeek: Optional[List[int]] = Field(None, description="0 = Sunday ... 6 = Saturday")


class SlicePolicy(BaseModel):
    policyId: str
    snssai: Snssai
    plmnId: PlmnId
    allowedTimeWindows: Optional[List[TimeWindow]] = None
    deniedTimeWindows: Optional[List[TimeWindow]] = None
    allowedTaiList: Optional[List[Tai]] = None
    deniedTaiList: Optional[List[Tai]] = None
    maxLoadLevel: Optional[int] = None
    enabled: bool = True


class AdmissionGroup(BaseModel, ABC):
    """Fields shared by NSAG and NSSRG configurations"""
    snssaiList: List[Snssai] = Field(default_factory=list)
    plmnId: PlmnId
    taiList: Optional[List[Tai]] = None
    taiRangeList: Optional[List[TaiRange]] = None
    maxUeCount: Optional[int] = None
    currentUeCount: int = 0
    priority: Optional[int] = None
    enabled: bool = True

    @property
    @abstractmethod
    def group_id(self):
        """Identifier of the group within its collection"""

    def covers_tai(self, tai: Tai) -> bool:
        if self.taiList is None and self.taiRangeList is None:
            return True
        if tai_in_list(tai, self.taiList):
            return True
        return any(r.contains(tai) for r in self.taiRangeList or [])


class NsagConfiguration(AdmissionGroup):
    nsagId: int

    @property
    def group_id(self) -> int:
        return self.nsagId


class NssrgConfiguration(AdmissionGroup):
    nssrgId: str

    @property
    def group_id(self) -> str:
        return self.nssrgId


class SnssaiMapping(BaseModel):
    mappingId: Optional[str] = None
    servingPlmnId: PlmnId
    homePlmnId: PlmnId
    servingSnssai: Snssai
    homeSnssai: Snssai
    validityArea: Optional[List[Tai]] = None

    def is_valid_in(self, tai: Optional[Tai]) -> bool:
        if tai is None or not self.validityArea:
            return True
        return tai_in_list(tai, self.validityArea)


class NsiConfiguration(BaseModel):
    nsiId: str
    snssai: Snssai
    plmnId: PlmnId
    nrfId: str
    nrfNfMgtUri: Optional[str] = None
    nrfAccessTokenUri: Optional[str] = None
    nrfOauth2Required: Optional[Dict[str, bool]] = None
    taiList: Optional[List[Tai]] = None
    priority: Optional[int] = None
    loadLevel: Optional[int] = None


class AmfSetConfig(BaseModel):
    amfSetId: str
    plmnId: PlmnId
    supportedSnssais: List[Snssai] = Field(default_factory=list)
    nrfId: Optional[str] = None
    nrfNfMgtUri: Optional[str] = None
    nrfAccessTokenUri: Optional[str] = None
    nrfOauth2Required: Optional[Dict[str, bool]] = None
    amfRegionId: Optional[str] = None
    priority: Optional[int] = None
    capacity: Optional[int] = None
    loadLevel: Optional[int] = None


class AmfServiceSetConfig(BaseModel):
    amfServiceSetId: str
    amfSetId: str
    plmnId: PlmnId
    supportedSnssais: List[Snssai] = Field(default_factory=list)
    nrfId: Optional[str] = None
    priority: Optional[int] = None
    capacity: Optional[int] = None
    loadLevel: Optional[int] = None


class AmfInstanceConfig(BaseModel):
    nfInstanceId: str
    amfSetId: str
    amfServiceSetId: Optional[str] = None
    plmnId: PlmnId
    supportedSnssais: List[Snssai] = Field(default_factory=list)
    guami: Optional[Guami] = None
    priority: Optional[int] = None
    capacity: Optional[int] = None
    loadLevel: Optional[int] = None


# =============================================================================
# NRF Types (3GPP TS 29.510)
# =============================================================================

class AmfInfo(BaseModel):
    amfSetId: Optional[str] = None
    amfRegionId: Optional[str] = None
    guamiList: Optional[List[Guami]] = None
    taiList: Optional[List[Tai]] = None


class NFProfile(BaseModel):
    nfInstanceId: str
    nfType: str
    nfStatus: str
    plmnList: Optional[List[PlmnId]] = None
    sNssais: Optional[List[Snssai]] = None
    nsiList: Optional[List[str]] = None
    fqdn: Optional[str] = None
    ipv4Addresses: Optional[List[str]] = None
    priority: Optional[int] = None
    capacity: Optional[int] = None
    load: Optional[int] = None
    locality: Optional[str] = None
    amfInfo: Optional[AmfInfo] = None


class SearchResult(BaseModel):
    nfInstances: List[NFProfile] = Field(default_factory=list)
    validityPeriod: Optional[int] = None
    nrfSupportedFeatures: Optional[str] = None


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3600
    scope: Optional[str] = None


class AmfCandidate(BaseModel):
    nfInstanceId: str
    amfSetId: Optional[str] = None
    amfServiceSetId: Optional[str] = None
    guami: Optional[Guami] = None


class AmfSelectionResult(BaseModel):
    """Outcome of AMF reselection, attached to the decision as a fallback"""
    targetAmfSet: Optional[str] = None
    targetAmfServiceSet: Optional[str] = None
    candidateAmfList: List[AmfCandidate] = Field(default_factory=list)
    nrfAmfSet: Optional[str] = None
    nrfAmfSetNfMgtUri: Optional[str] = None
    nrfAmfSetAccessTokenUri: Optional[str] = None
    nrfOauth2Required: Optional[Dict[str, bool]] = None
    amfRegionId: Optional[str] = None


# =============================================================================
# Nnssf_NSSelection Request Types
# =============================================================================

class MappingOfSnssai(BaseModel):
    servingSnssai: Snssai = Field(..., description="Serving PLMN S-NSSAI")
    homeSnssai: Snssai = Field(..., description="Home PLMN S-NSSAI")


class NsiInformation(BaseModel):
    nrfId: Optional[str] = Field(None, description="NRF ID for NSI")
    nsiId: Optional[str] = Field(None, description="Network Slice Instance ID")
    nrfNfMgtUri: Optional[str] = Field(None, description="NRF NF Management URI")
    nrfAccessTokenUri: Optional[str] = Field(None, description="NRF Access Token URI")
    nrfOauth2Required: Optional[Dict[str, bool]] = Field(None, description="OAuth2 required per NRF service")


class AllowedSnssai(BaseModel):
    allowedSnssai: Snssai = Field(..., description="Allowed S-NSSAI")
    nsiInformationList: Optional[List[NsiInformation]] = Field(None, description="NSI Information List")
    mappedHomeSnssai: Optional[Snssai] = Field(None, description="Mapped Home PLMN S-NSSAI")


class AllowedNssai(BaseModel):
    allowedSnssaiList: List[AllowedSnssai] = Field(..., description="List of Allowed S-NSSAIs")
    accessType: AccessType = Field(..., description="Access Type")


class ConfiguredSnssai(BaseModel):
    configuredSnssai: Snssai = Field(..., description="Configured S-NSSAI")
    mappedHomeSnssai: Optional[Snssai] = Field(None, description="Mapped Home S-NSSAI")


class SliceInfoForRegistration(BaseModel):
    subscribedNssai: Optional[List[SubscribedSnssai]] = Field(None, description="Subscribed NSSAI")
    allowedNssaiCurrentAccess: Optional[AllowedNssai] = Field(None, description="Allowed NSSAI for current access")
    allowedNssaiOtherAccess: Optional[AllowedNssai] = Field(None, description="Allowed NSSAI for other access")
    sNssaiForMapping: Optional[List[Snssai]] = Field(None, description="S-NSSAI for mapping")
    requestedNssai: Optional[List[Snssai]] = Field(None, description="Requested NSSAI")
    defaultConfiguredSnssaiInd: bool = Field(False, description="Default Configured NSSAI indication")
    mappingOfNssai: Optional[List[MappingOfSnssai]] = Field(None, description="Mapping of NSSAI")
    requestMapping: bool = Field(False, description="Request mapping indication")


class SliceInfoForPduSession(BaseModel):
    sNssai: Snssai = Field(..., description="S-NSSAI for PDU Session")
    roamingIndication: RoamingIndication = Field(..., description="Roaming indication")
    homeSnssai: Optional[Snssai] = Field(None, description="Home S-NSSAI")


class SliceInfoForUeConfigurationUpdate(BaseModel):
    subscribedNssai: Optional[List[SubscribedSnssai]] = Field(None, description="Subscribed NSSAI")
    allowedNssaiCurrentAccess: Optional[AllowedNssai] = Field(None, description="Allowed NSSAI for current access")
    allowedNssaiOtherAccess: Optional[AllowedNssai] = Field(None, description="Allowed NSSAI for other access")
    defaultConfiguredSnssaiInd: bool = Field(False, description="Default Configured NSSAI indication")
    requestedNssai: Optional[List[Snssai]] = Field(None, description="Requested NSSAI")
    mappingOfNssai: Optional[List[MappingOfSnssai]] = Field(None, description="Mapping of NSSAI")
    rejectedNssaiRa: Optional[List[Snssai]] = Field(None, description="Rejected NSSAI in RA")


class SelectionContext(BaseModel):
    """Identity and location of the subscriber a decision is made for"""
    supi: str
    homePlmnId: PlmnId
    tai: Optional[Tai] = None
    servingPlmnId: Optional[PlmnId] = None

    @property
    def serving_plmn(self) -> PlmnId:
        if self.servingPlmnId is not None:
            return self.servingPlmnId
        if self.tai is not None:
            return self.tai.plmnId
        return self.homePlmnId

    @property
    def is_roaming(self) -> bool:
        return self.serving_plmn != self.homePlmnId


# =============================================================================
# Nnssf_NSSelection Response
# =============================================================================

class AuthorizedNetworkSliceInfo(BaseModel):
    allowedNssaiList: Optional[List[AllowedNssai]] = Field(None, description="Allowed NSSAI List")
    configuredNssai: Optional[List[ConfiguredSnssai]] = Field(None, description="Configured NSSAI")
    targetAmfSet: Optional[str] = Field(None, description="Target AMF Set")
    candidateAmfList: Optional[List[str]] = Field(None, description="Candidate AMF List")
    rejectedNssaiInPlmn: Optional[List[Snssai]] = Field(None, description="Rejected NSSAI in PLMN")
    rejectedNssaiInTa: Optional[List[Snssai]] = Field(None, description="Rejected NSSAI in TA")
    nsiInformation: Optional[NsiInformation] = Field(None, description="NSI Information")
    supportedFeatures: Optional[str] = Field(None, description="Supported features")
    nrfAmfSet: Optional[str] = Field(None, description="NRF AMF Set")
    nrfAmfSetNfMgtUri: Optional[str] = Field(None, description="NRF AMF Set NF Mgt URI")
    nrfAmfSetAccessTokenUri: Optional[str] = Field(None, description="NRF AMF Set Access Token URI")
    nrfOauth2Required: Optional[Dict[str, bool]] = Field(None, description="OAuth2 required per NRF service")
    targetAmfServiceSet: Optional[str] = Field(None, description="Target AMF Service Set")
    mappingOfNssai: Optional[List[MappingOfSnssai]] = Field(None, description="Mapping of NSSAI")

    @classmethod
    def build(
        cls,
        allowed: Optional[List[AllowedSnssai]] = None,
        configured: Optional[List[ConfiguredSnssai]] = None,
        rejected_in_plmn: Optional[List[Snssai]] = None,
        rejected_in_ta: Optional[List[Snssai]] = None,
        amf: Optional[AmfSelectionResult] = None,
        nsi_information: Optional[NsiInformation] = None,
        mappings: Optional[List[MappingOfSnssai]] = None,
    ) -> "AuthorizedNetworkSliceInfo":
        """
        Assemble the response aggregate. Every group that is empty is left
        unset so that it is omitted from the serialized payload.
        """
        info = cls(
            allowedNssaiList=[
                AllowedNssai(allowedSnssaiList=allowed, accessType=AccessType.THREE_GPP_ACCESS)
            ] if allowed else None,
            configuredNssai=configured or None,
            rejectedNssaiInPlmn=rejected_in_plmn or None,
            rejectedNssaiInTa=rejected_in_ta or None,
            nsiInformation=nsi_information,
            mappingOfNssai=mappings or None,
        )
        if amf is not None:
            info.targetAmfSet = amf.targetAmfSet
            info.targetAmfServiceSet = amf.targetAmfServiceSet
            info.candidateAmfList = [c.nfInstanceId for c in amf.candidateAmfList] or None
            info.nrfAmfSet = amf.nrfAmfSet
            info.nrfAmfSetNfMgtUri = amf.nrfAmfSetNfMgtUri
            info.nrfAmfSetAccessTokenUri = amf.nrfAmfSetAccessTokenUri
            info.nrfOauth2Required = amf.nrfOauth2Required or None
        return info

    def allowed_snssais(self) -> List[Snssai]:
        return [
            entry.allowedSnssai
            for allowed in self.allowedNssaiList or []
            for entry in allowed.allowedSnssaiList
        ]

    def to_payload(self) -> Dict:
        return self.model_dump(mode="json", exclude_none=True)


# =============================================================================
# Nnssf_NSSAIAvailability Types
# =============================================================================

class RestrictionType(str, Enum):
    NOT_ALLOWED = "NOT_ALLOWED"
    RESTRICTED_IN_TAI = "RESTRICTED_IN_TAI"


class SupportedNssaiAvailabilityData(BaseModel):
    tai: Tai = Field(..., description="Tracking Area Identity")
    supportedSnssaiList: Optional[List[Snssai]] = Field(None, description="S-NSSAIs supported in the TA")


class NssaiAvailabilityInfo(BaseModel):
    """NSSAI availability reported by an AMF"""
    supportedNssaiAvailabilityData: List[SupportedNssaiAvailabilityData] = Field(..., min_length=1)
    supportedFeatures: Optional[str] = None
    amfSetId: Optional[str] = None


class NfNssaiAvailability(NssaiAvailabilityInfo):
    nfId: str


class RestrictedSnssai(BaseModel):
    snssai: Snssai
    restrictionType: Optional[RestrictionType] = None


class AuthorizedNssaiAvailabilityData(BaseModel):
    tai: Tai
    supportedSnssaiList: List[Snssai] = Field(default_factory=list)
    restrictedSnssaiList: Optional[List[RestrictedSnssai]] = None


class NssaiAvailabilitySubscriptionData(BaseModel):
    tai: Tai = Field(..., description="TA the subscriber is interested in")
    supportedSnssaiList: Optional[List[Snssai]] = Field(None, description="S-NSSAIs to report on")


class NssaiAvailabilitySubscriptionCreateRequest(BaseModel):
    nfInstanceId: str = Field(..., min_length=1)
    subscriptionData: NssaiAvailabilitySubscriptionData
    notificationUri: str = Field(..., min_length=1)
    supportedFeatures: Optional[str] = None
    expiryTime: Optional[str] = None


class NssaiAvailabilitySubscriptionUpdateRequest(BaseModel):
    subscriptionData: NssaiAvailabilitySubscriptionData
    supportedFeatures: Optional[str] = None
    expiryTime: Optional[str] = None


class NssaiAvailabilitySubscription(NssaiAvailabilitySubscriptionCreateRequest):
    subscriptionId: str
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class NssaiAvailabilityNotification(BaseModel):
    subscriptionId: str
    authorizedNssaiAvailabilityData: List[AuthorizedNssaiAvailabilityData]


# =============================================================================
# Component Results
# =============================================================================

class PolicyDecision(BaseModel):
    """Outcome of a single policy"""
    allowed: bool
    reason: Optional[str] = None
    policyId: Optional[str] = None


class PolicyEvaluationResult(BaseModel):
    """Aggregate outcome of every enabled policy of a slice"""
    allowed: bool
    reasons: List[str] = Field(default_factory=list)


class AdmissionResult(BaseModel):
    admitted: bool
    groupId: Optional[Union[int, str]] = None
    reason: Optional[str] = None


class ProblemDetails(BaseModel):
    """RFC 7807 problem details as used by 3GPP SBI"""
    type: Optional[str] = None
    title: Optional[str] = None
    status: Optional[int] = None
    detail: Optional[str] = None
    instance: Optional[str] = None
    cause: Optional[str] = None
    invalidParams: Optional[List[Dict[str, str]]] = None
    supportedFeatures: Optional[str] = None
