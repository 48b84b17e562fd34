# File location: nssf/slice_selection/__init__.py
# Network Slice Selection Module for the NSSF
# Provides the Nnssf_NSSelection decision engine, its components and NSSAI availability

"""
Slice Selection Module - 3GPP TS 29.531 decision core

- Selection Engine: allowed / configured / rejected NSSAI for registration,
  PDU session establishment and UE configuration update
- Policy Evaluator: time window, area and load policies per slice
- Admission Controller: NSAG / NSSRG capacity-bounded admission groups
- Mapping Resolver: serving <-> home S-NSSAI mapping for roaming subscribers
- NSI and AMF Selectors: ranked slice instances and AMF reselection
- Feature Negotiator: supported-features bitmask negotiation
- NRF Client: access tokens and AMF discovery via the NRF
- NSSAI Availability: authorized S-NSSAIs per TA, AMF reports and subscriptions
"""

__version__ = "1.0.0"

from .models import (
    AuthorizedNetworkSliceInfo,
    PlmnId,
    SelectionContext,
    SliceInfoForPduSession,
    SliceInfoForRegistration,
    SliceInfoForUeConfigurationUpdate,
    Snssai,
    Tai,
)
from .errors import DatabaseError, NotFoundError, NrfError, NssfError, SelectionError, ValidationError
from .repository import SliceRepository
from .feature_negotiation import FeatureNegotiator, NssfFeature
from .mapping import MappingResolver
from .policy import PolicyEvaluator
from .admission import AdmissionAccounting, AdmissionController, AdmissionHook
from .nsi_selection import NsiSelector
from .nrf_client import AccessTokenCache, NrfClient
from .amf_selection import AmfSelector
from .engine import SelectionEngine
from .availability import NssaiAvailabilityService

__all__ = [
    # Models
    "AuthorizedNetworkSliceInfo",
    "PlmnId",
    "SelectionContext",
    "SliceInfoForPduSession",
    "SliceInfoForRegistration",
    "SliceInfoForUeConfigurationUpdate",
    "Snssai",
    "Tai",
    # Errors
    "DatabaseError",
    "NotFoundError",
    "NrfError",
    "NssfError",
    "SelectionError",
    "ValidationError",
    # Core Components
    "SliceRepository",
    "FeatureNegotiator",
    "NssfFeature",
    "MappingResolver",
    "PolicyEvaluator",
    "AdmissionController",
    "AdmissionHook",
    "AdmissionAccounting",
    "NsiSelector",
    "AccessTokenCache",
    "NrfClient",
    "AmfSelector",
    "SelectionEngine",
    "NssaiAvailabilityService",
]
