# File location: nssf/slice_selection/validation.py
# Request validation for Nnssf_NSSelection and Nnssf_NSSAIAvailability

"""
Validation of the network-slice-information query parameters.

The complex parameters arrive as JSON-encoded query strings. Each problem
is reported as a {"param": ..., "reason": ...} entry; parse_selection_request
collects them and raises ValidationError when any were found.
NSSAI availability bodies are JSON objects checked the same way by
parse_availability_body.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import (
    NfType,
    PlmnId,
    RoamingIndication,
    SelectionContext,
    SliceInfoForPduSession,
    SliceInfoForRegistration,
    SliceInfoForUeConfigurationUpdate,
    Snssai,
    Tai,
)

MAX_REQUESTED_NSSAI = 8

InvalidParam = Dict[str, str]

_SD_RE = re.compile(r"^[0-9A-Fa-f]{6}$")
_TAC_RE = re.compile(r"^[0-9A-Fa-f]{4,6}$")
_SUPI_RE = re.compile(r"^(imsi-|nai-)[0-9a-zA-Z@.\-]+$")

SLICE_INFO_PARAMS = (
    "slice-info-request-for-registration",
    "slice-info-request-for-pdu-session",
    "slice-info-request-for-ue-cu",
)


def _invalid(param: str, reason: str) -> InvalidParam:
    return {"param": param, "reason": reason}


def validate_plmn_id(value: Any, param: str) -> Optional[InvalidParam]:
    if not isinstance(value, dict):
        return _invalid(param, "must be an object")
    mcc, mnc = value.get("mcc"), value.get("mnc")
    if not isinstance(mcc, str) or len(mcc) != 3:
        return _invalid(f"{param}.mcc", "must be a 3-digit string")
    if not isinstance(mnc, str) or len(mnc) not in (2, 3):
        return _invalid(f"{param}.mnc", "must be a 2 or 3-digit string")
    return None


def validate_snssai(value: Any, param: str) -> Optional[InvalidParam]:
    if not isinstance(value, dict):
        return _invalid(param, "must be an object")
    sst = value.get("sst")
    if sst is None:
        return _invalid(f"{param}.sst", "is required")
    if isinstance(sst, bool) or not isinstance(sst, int) or not 0 <= sst <= 255:
        return _invalid(f"{param}.sst", "must be a number between 0 and 255")
    sd = value.get("sd")
    if sd is not None and (not isinstance(sd, str) or not _SD_RE.match(sd)):
        return _invalid(f"{param}.sd", "must be a 6-digit hexadecimal string")
    return None


def validate_tai(value: Any, param: str) -> Optional[InvalidParam]:
    if not isinstance(value, dict):
        return _invalid(param, "must be an object")
    plmn_error = validate_plmn_id(value.get("plmnId"), f"{param}.plmnId")
    if plmn_error:
        return plmn_error
    tac = value.get("tac")
    if not isinstance(tac, str) or not _TAC_RE.match(tac):
        return _invalid(f"{param}.tac", "must be a 4-6 digit hexadecimal string")
    return None


def validate_supi(supi: Any) -> Optional[InvalidParam]:
    if not supi or not isinstance(supi, str):
        return _invalid("supi", "must be a non-empty string")
    if not _SUPI_RE.match(supi):
        return _invalid("supi", "must be a valid SUPI format (imsi-* or nai-*)")
    return None


def validate_requested_nssai(value: Any, param: str = "requestedNssai") -> List[InvalidParam]:
    """At most 8 well-formed, distinct S-NSSAIs"""
    if value is None:
        return []
    if not isinstance(value, list):
        return [_invalid(param, "must be an array")]
    if len(value) > MAX_REQUESTED_NSSAI:
        return [_invalid(param, f"cannot exceed {MAX_REQUESTED_NSSAI} S-NSSAI entries (per 3GPP TS 24.501)")]

    errors = [e for e in (validate_snssai(s, f"{param}[{i}]") for i, s in enumerate(value)) if e]
    if errors:
        return errors

    keys = [(s["sst"], s.get("sd")) for s in value]
    if len(set(keys)) != len(keys):
        return [_invalid(param, "contains duplicate S-NSSAI entries")]
    return []


def validate_snssai_list(value: Any, param: str) -> List[InvalidParam]:
    if value is None:
        return []
    if not isinstance(value, list):
        return [_invalid(param, "must be an array")]
    return [e for e in (validate_snssai(s, f"{param}[{i}]") for i, s in enumerate(value)) if e]


def process_requested_nssai(requested: Optional[List[Snssai]]) -> List[Snssai]:
    """De-duplicate keeping first occurrences, then cap at 8"""
    unique: List[Snssai] = []
    for snssai in requested or []:
        if snssai not in unique:
            unique.append(snssai)
    return unique[:MAX_REQUESTED_NSSAI]


def parse_json_param(raw: Optional[str], param: str) -> Tuple[Any, Optional[InvalidParam]]:
    if not raw:
        return None, None
    try:
        return json.loads(raw), None
    except json.JSONDecodeError:
        return None, _invalid(param, "must be valid JSON")


def validate_required_param(value: Any, param: str) -> Optional[InvalidParam]:
    if value is None or value == "":
        return _invalid(param, "is required")
    return None


def _pydantic_errors(error: PydanticValidationError, param: str) -> List[InvalidParam]:
    return [
        _invalid(".".join([param, *(str(part) for part in e["loc"])]), e["msg"])
        for e in error.errors()
    ]


def _validate_registration(body: Any, param: str) -> List[InvalidParam]:
    if not isinstance(body, dict):
        return [_invalid(param, "must be an object")]
    return (
        validate_requested_nssai(body.get("requestedNssai"), f"{param}.requestedNssai")
        + validate_snssai_list(body.get("sNssaiForMapping"), f"{param}.sNssaiForMapping")
    )


def _validate_pdu_session(body: Any, param: str) -> List[InvalidParam]:
    if not isinstance(body, dict):
        return [_invalid(param, "must be an object")]
    errors = []
    snssai_error = validate_snssai(body.get("sNssai"), f"{param}.sNssai")
    if snssai_error:
        errors.append(snssai_error)
    roaming = body.get("roamingIndication")
    if roaming not in {r.value for r in RoamingIndication}:
        errors.append(_invalid(f"{param}.roamingIndication", "must be a valid roaming indication"))
    if body.get("homeSnssai") is not None:
        home_error = validate_snssai(body["homeSnssai"], f"{param}.homeSnssai")
        if home_error:
            errors.append(home_error)
    return errors


def _validate_ue_cu(body: Any, param: str) -> List[InvalidParam]:
    if not isinstance(body, dict):
        return [_invalid(param, "must be an object")]
    return (
        validate_requested_nssai(body.get("requestedNssai"), f"{param}.requestedNssai")
        + validate_snssai_list(body.get("rejectedNssaiRa"), f"{param}.rejectedNssaiRa")
    )


_SLICE_INFO = {
    "slice-info-request-for-registration": (_validate_registration, SliceInfoForRegistration),
    "slice-info-request-for-pdu-session": (_validate_pdu_session, SliceInfoForPduSession),
    "slice-info-request-for-ue-cu": (_validate_ue_cu, SliceInfoForUeConfigurationUpdate),
}


@dataclass
class SelectionRequest:
    """A validated network-slice-information request"""
    nf_type: NfType
    nf_id: str
    context: SelectionContext
    registration: Optional[SliceInfoForRegistration] = None
    pdu_session: Optional[SliceInfoForPduSession] = None
    ue_configuration_update: Optional[SliceInfoForUeConfigurationUpdate] = None
    supported_features: Optional[str] = None


def parse_selection_request(params: Mapping[str, Optional[str]]) -> SelectionRequest:
    """
    Validate the raw query parameters and build the typed request.

    When several slice-info parameters are present the first of
    registration, PDU session, UE configuration update is used.
    """
    errors: List[InvalidParam] = []

    for name in ("nf-type", "nf-id", "supi", "home-plmn-id"):
        missing = validate_required_param(params.get(name), name)
        if missing:
            errors.append(missing)

    nf_type = params.get("nf-type")
    if nf_type and nf_type not in {t.value for t in NfType}:
        errors.append(_invalid("nf-type", "must be a valid NF type"))

    if params.get("supi"):
        supi_error = validate_supi(params["supi"])
        if supi_error:
            errors.append(supi_error)

    home_plmn, json_error = parse_json_param(params.get("home-plmn-id"), "home-plmn-id")
    if json_error:
        errors.append(json_error)
    elif home_plmn is not None:
        plmn_error = validate_plmn_id(home_plmn, "home-plmn-id")
        if plmn_error:
            errors.append(plmn_error)

    tai, json_error = parse_json_param(params.get("tai"), "tai")
    if json_error:
        errors.append(json_error)
    elif tai is not None:
        tai_error = validate_tai(tai, "tai")
        if tai_error:
            errors.append(tai_error)

    slice_param = next((name for name in SLICE_INFO_PARAMS if params.get(name)), None)
    slice_info = None
    if slice_param is None:
        errors.append(_invalid(
            "slice-info-request-for-registration",
            "one of slice-info-request-for-registration, slice-info-request-for-pdu-session "
            "or slice-info-request-for-ue-cu is required",
        ))
    else:
        body, json_error = parse_json_param(params[slice_param], slice_param)
        if json_error:
            errors.append(json_error)
        else:
            validator, model = _SLICE_INFO[slice_param]
            body_errors = validator(body, slice_param)
            errors.extend(body_errors)
            if not body_errors:
                try:
                    slice_info = model(**body)
                except PydanticValidationError as e:
                    errors.extend(_pydantic_errors(e, slice_param))

    if errors:
        raise ValidationError(errors)

    context = SelectionContext(
        supi=params["supi"],
        homePlmnId=PlmnId(**home_plmn),
        tai=Tai(**tai) if tai is not None else None,
    )
    request = SelectionRequest(
        nf_type=NfType(nf_type),
        nf_id=params["nf-id"],
        context=context,
        supported_features=params.get("supported-features"),
    )
    if slice_param == "slice-info-request-for-registration":
        request.registration = slice_info
    elif slice_param == "slice-info-request-for-pdu-session":
        request.pdu_session = slice_info
    else:
        request.ue_configuration_update = slice_info
    return request


# Nnssf_NSSAIAvailability request bodies

def _availability_tais(body: Dict) -> List[Tuple[str, Any]]:
    """(param, raw TAI) pairs of the TAIs an availability body carries"""
    tais = []
    subscription_data = body.get("subscriptionData")
    if isinstance(subscription_data, dict) and "tai" in subscription_data:
        tais.append(("subscriptionData.tai", subscription_data["tai"]))
    entries = body.get("supportedNssaiAvailabilityData")
    if isinstance(entries, list):
        for i, entry in enumerate(entries):
            if isinstance(entry, dict) and "tai" in entry:
                tais.append((f"supportedNssaiAvailabilityData[{i}].tai", entry["tai"]))
    return tais


def parse_availability_body(body: Any, model: Type[BaseModel]):
    """Build an availability request model; every problem becomes an invalid param"""
    if not isinstance(body, dict):
        raise ValidationError([_invalid("body", "must be a JSON object")], cause="INVALID_MSG_FORMAT")

    errors = [e for e in (validate_tai(tai, param) for param, tai in _availability_tais(body)) if e]
    try:
        request = model.model_validate(body)
    except PydanticValidationError as e:
        errors.extend(_pydantic_errors(e, "body"))
        request = None

    if errors:
        raise ValidationError(errors, cause="INVALID_MSG_FORMAT")
    return request
