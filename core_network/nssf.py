# File location: nssf/core_network/nssf.py
# 3GPP TS 29.531 - Network Slice Selection Function (NSSF)
# Implements the Nnssf_NSSelection and Nnssf_NSSAIAvailability services on top of slice_selection

from fastapi import FastAPI, Depends, Path, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional
import uvicorn
import requests
import uuid
import logging
from contextlib import asynccontextmanager, contextmanager
from opentelemetry import trace

from config import settings
from config.ports import get_port
from core_network.db import Database
from slice_selection.availability import NssaiAvailabilityService
from slice_selection.errors import DatabaseError, NotFoundError, NrfError, NssfError, SelectionError, ValidationError
from slice_selection.engine import SelectionEngine
from slice_selection.feature_negotiation import FeatureNegotiator
from slice_selection.models import (
    AccessType,
    AmfInstanceConfig,
    AmfServiceSetConfig,
    AmfSetConfig,
    Guami,
    NsagConfiguration,
    NsiConfiguration,
    NssaiAvailabilityInfo,
    NssaiAvailabilitySubscriptionCreateRequest,
    NssaiAvailabilitySubscriptionUpdateRequest,
    PlmnId,
    ProblemDetails,
    RoamingIndication,
    SliceConfiguration,
    SlicePolicy,
    Snssai,
    SnssaiMapping,
    SubscribedSnssai,
    Tai,
    UeSubscription,
)
from slice_selection.nrf_client import NrfClient
from slice_selection.repository import SliceRepository
from slice_selection.validation import parse_availability_body, parse_selection_request

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# OpenTelemetry tracer
tracer = trace.get_tracer(__name__)

nrf_url = settings.NRF_URL
nf_instance_id = str(uuid.uuid4())

HOME_PLMN = PlmnId(mcc="001", mnc="01")
VISITED_PLMN = PlmnId(mcc="310", mnc="260")
NRF_NFM_URI = f"{nrf_url}/nnrf-nfm/v1"


async def seed_default_configuration(repository: SliceRepository):
    """Default slice catalog for the in-memory store"""
    embb = Snssai(sst=1, sd="010203")
    embb_variant = Snssai(sst=1, sd="112233")
    urllc = Snssai(sst=2, sd="010203")
    miot = Snssai(sst=3, sd="010203")
    embb_default = Snssai(sst=1, sd=None)

    tai_1 = Tai(plmnId=HOME_PLMN, tac="000001")
    tai_2 = Tai(plmnId=HOME_PLMN, tac="000002")
    tai_3 = Tai(plmnId=HOME_PLMN, tac="000003")

    # Slices available in the home PLMN, restricted by TA where listed
    for slice_config in [
        SliceConfiguration(snssai=embb, plmnId=HOME_PLMN, isDefault=True, priority=10),
        SliceConfiguration(snssai=embb_variant, plmnId=HOME_PLMN, taiList=[tai_3], priority=5),
        SliceConfiguration(snssai=urllc, plmnId=HOME_PLMN, taiList=[tai_1], priority=20),
        SliceConfiguration(snssai=miot, plmnId=HOME_PLMN, taiList=[tai_3], priority=1),
        SliceConfiguration(snssai=embb_default, plmnId=HOME_PLMN, taiList=[tai_1, tai_2], priority=1),
        SliceConfiguration(snssai=embb, plmnId=VISITED_PLMN, accessType=AccessType.THREE_GPP_ACCESS),
    ]:
        await repository.add_slice(slice_config)

    # NSI Information per S-NSSAI
    for nsi in [
        NsiConfiguration(nsiId="nsi-embb-001", snssai=embb, plmnId=HOME_PLMN, nrfId="nrf-001",
                         nrfNfMgtUri=NRF_NFM_URI, priority=10, loadLevel=30),
        NsiConfiguration(nsiId="nsi-embb-002", snssai=embb, plmnId=HOME_PLMN, nrfId="nrf-001",
                         nrfNfMgtUri=NRF_NFM_URI, priority=10, loadLevel=60),
        NsiConfiguration(nsiId="nsi-urllc-001", snssai=urllc, plmnId=HOME_PLMN, nrfId="nrf-001",
                         nrfNfMgtUri=NRF_NFM_URI),
        NsiConfiguration(nsiId="nsi-miot-001", snssai=miot, plmnId=HOME_PLMN, nrfId="nrf-001",
                         nrfNfMgtUri=NRF_NFM_URI),
        NsiConfiguration(nsiId="nsi-default-001", snssai=embb_default, plmnId=HOME_PLMN, nrfId="nrf-001",
                         nrfNfMgtUri=NRF_NFM_URI),
    ]:
        await repository.add_nsi(nsi)

    # URLLC is only offered outside the nightly maintenance window
    await repository.add_policy(SlicePolicy(
        policyId="policy-urllc-maintenance",
        snssai=urllc,
        plmnId=HOME_PLMN,
        deniedTimeWindows=[{"startTime": "02:00", "endTime": "03:00"}],
    ))

    await repository.add_nsag(NsagConfiguration(
        nsagId=1, snssaiList=[urllc], plmnId=HOME_PLMN, maxUeCount=1000, priority=10,
    ))

    # VPLMN to HPLMN S-NSSAI mappings (for roaming)
    for serving, home in [(embb, Snssai(sst=1, sd="aabbcc")), (urllc, Snssai(sst=2, sd="ddeeff"))]:
        await repository.create_mapping(SnssaiMapping(
            servingPlmnId=VISITED_PLMN, homePlmnId=HOME_PLMN, servingSnssai=serving, homeSnssai=home,
        ))

    # AMF hierarchy
    await repository.add_amf_set(AmfSetConfig(
        amfSetId="amf-set-001", plmnId=HOME_PLMN, supportedSnssais=[embb, urllc, embb_default],
        nrfId="nrf-001", nrfNfMgtUri=NRF_NFM_URI, amfRegionId="01", priority=10, capacity=100,
    ))
    await repository.add_amf_set(AmfSetConfig(
        amfSetId="amf-set-002", plmnId=HOME_PLMN, supportedSnssais=[embb, embb_variant, miot],
        nrfId="nrf-001", nrfNfMgtUri=NRF_NFM_URI, amfRegionId="01", priority=5, capacity=50,
    ))
    await repository.add_amf_service_set(AmfServiceSetConfig(
        amfServiceSetId="amf-service-set-001", amfSetId="amf-set-001", plmnId=HOME_PLMN,
        supportedSnssais=[embb, urllc, embb_default], priority=10,
    ))
    for index, load in [(1, 40), (2, 10)]:
        await repository.add_amf_instance(AmfInstanceConfig(
            nfInstanceId=f"amf-{index:03d}", amfSetId="amf-set-001", amfServiceSetId="amf-service-set-001",
            plmnId=HOME_PLMN, supportedSnssais=[embb, urllc, embb_default],
            guami=Guami(plmnId=HOME_PLMN, amfId=f"cafe0{index}"), capacity=100, loadLevel=load,
        ))

    await repository.add_subscription(UeSubscription(
        supi="imsi-001010000000001",
        plmnId=HOME_PLMN,
        subscribedSnssais=[
            SubscribedSnssai(subscribedSnssai=embb, defaultIndication=True),
            SubscribedSnssai(subscribedSnssai=urllc),
            SubscribedSnssai(subscribedSnssai=miot),
        ],
        defaultSnssai=embb,
    ))
    logger.info("Seeded default NSSF slice configuration")


def register_with_nrf():
    nf_profile = {
        "nfInstanceId": nf_instance_id,
        "nfType": "NSSF",
        "nfStatus": "REGISTERED",
        "plmnList": [HOME_PLMN.model_dump()],
        "nfServices": [
            {
                "serviceInstanceId": "nnssf-nsselection-001",
                "serviceName": "nnssf-nsselection",
                "versions": [{"apiVersionInUri": "v2"}],
                "scheme": "http",
                "nfServiceStatus": "REGISTERED",
                "ipEndPoints": [{"ipv4Address": "127.0.0.1", "port": get_port("nssf")}]
            },
            {
                "serviceInstanceId": "nnssf-nssaiavailability-001",
                "serviceName": "nnssf-nssaiavailability",
                "versions": [{"apiVersionInUri": "v1"}],
                "scheme": "http",
                "nfServiceStatus": "REGISTERED",
                "ipEndPoints": [{"ipv4Address": "127.0.0.1", "port": get_port("nssf")}]
            }
        ],
        "nssfInfo": {
            "nssfId": nf_instance_id,
            "supiRanges": [{"start": "001010000000001", "end": "001010000099999"}]
        }
    }

    try:
        response = requests.put(
            f"{nrf_url}/nnrf-nfm/v1/nf-instances/{nf_instance_id}",
            json=nf_profile,
            timeout=settings.NRF_REQUEST_TIMEOUT
        )
        if response.status_code in [200, 201]:
            logger.info("NSSF registered with NRF successfully")
        else:
            logger.warning(f"NSSF registration with NRF failed: {response.status_code}")
    except requests.RequestException as e:
        logger.error(f"Failed to register NSSF with NRF: {e}")


def deregister_from_nrf():
    try:
        requests.delete(
            f"{nrf_url}/nnrf-nfm/v1/nf-instances/{nf_instance_id}",
            timeout=settings.NRF_REQUEST_TIMEOUT
        )
        logger.info("NSSF deregistered from NRF")
    except requests.RequestException as e:
        logger.warning(f"Failed to deregister NSSF from NRF: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup - storage, engine, NRF registration
    database = Database()
    await database.connect()
    repository = SliceRepository(database)
    if not database.is_connected and settings.NSSF_SEED_DEFAULTS:
        await seed_default_configuration(repository)

    nrf_client = NrfClient()
    app.state.database = database
    app.state.engine = SelectionEngine(
        repository,
        nrf_client=nrf_client,
        roaming_indication=RoamingIndication(settings.NSSF_ROAMING_INDICATION),
        nf_instance_id=nf_instance_id,
    )
    app.state.negotiator = FeatureNegotiator()
    app.state.availability = NssaiAvailabilityService(repository)

    if settings.NRF_REGISTRATION_ENABLED:
        register_with_nrf()

    yield

    # Shutdown
    if settings.NRF_REGISTRATION_ENABLED:
        deregister_from_nrf()
    await app.state.availability.close()
    await nrf_client.close()
    await database.close()


app = FastAPI(
    title="NSSF - Network Slice Selection Function",
    description="3GPP TS 29.531 Nnssf_NSSelection and Nnssf_NSSAIAvailability services",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_engine(request: Request) -> SelectionEngine:
    return request.app.state.engine


def get_negotiator(request: Request) -> FeatureNegotiator:
    return getattr(request.app.state, "negotiator", None) or FeatureNegotiator()


def get_availability_service(request: Request) -> NssaiAvailabilityService:
    return request.app.state.availability


# Error mapping - RFC 7807 problem details

def problem_for(error: NssfError) -> ProblemDetails:
    if isinstance(error, ValidationError):
        return ProblemDetails(
            title="Bad Request", status=400, detail="Invalid request parameters",
            cause=error.cause, invalidParams=error.invalid_params,
        )
    if isinstance(error, NotFoundError):
        return ProblemDetails(title="Not Found", status=404, detail=error.message, cause=error.cause)
    if isinstance(error, DatabaseError):
        if error.is_connection_error:
            return ProblemDetails(
                title="Service Unavailable", status=503,
                detail="Unable to connect to database. Please try again later.",
                cause="NF_CONGESTION",
            )
        return ProblemDetails(
            title="Internal Server Error", status=500,
            detail="A database error occurred while processing the request",
            cause="SYSTEM_FAILURE",
        )
    if isinstance(error, NrfError):
        if error.is_timeout:
            return ProblemDetails(
                title="Gateway Timeout", status=504, detail="NRF service timed out", cause="TIMED_OUT_REQUEST",
            )
        return ProblemDetails(
            title="Service Unavailable", status=503,
            detail="Unable to communicate with NRF service", cause="NF_SERVICE_FAILURE",
        )
    if isinstance(error, SelectionError):
        detail = "An unexpected error occurred during network slice selection"
    else:
        detail = "An unexpected error occurred while processing the request"
    return ProblemDetails(title="Internal Server Error", status=500, detail=detail, cause="SYSTEM_FAILURE")


@app.exception_handler(NssfError)
async def nssf_error_handler(request: Request, error: NssfError):
    problem = problem_for(error)
    problem.instance = request.url.path
    if problem.status >= 500:
        logger.error(f"{problem.title}: {error.message}")
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
    )


# 3GPP TS 29.531 - Nnssf_NSSelection Service

@app.get("/nnssf-nsselection/v2/network-slice-information")
async def get_network_slice_information(
    nf_type: Optional[str] = Query(None, alias="nf-type", description="NF Type"),
    nf_id: Optional[str] = Query(None, alias="nf-id", description="NF Instance ID"),
    supi: Optional[str] = Query(None, alias="supi", description="SUPI"),
    home_plmn_id: Optional[str] = Query(None, alias="home-plmn-id", description="Home PLMN ID (JSON)"),
    tai: Optional[str] = Query(None, alias="tai", description="TAI (JSON)"),
    slice_info_for_registration: Optional[str] = Query(
        None, alias="slice-info-request-for-registration", description="Slice info for registration (JSON)"
    ),
    slice_info_for_pdu_session: Optional[str] = Query(
        None, alias="slice-info-request-for-pdu-session", description="Slice info for PDU session (JSON)"
    ),
    slice_info_for_ue_cu: Optional[str] = Query(
        None, alias="slice-info-request-for-ue-cu", description="Slice info for UE configuration update (JSON)"
    ),
    supported_features: Optional[str] = Query(None, alias="supported-features", description="Supported features"),
    engine: SelectionEngine = Depends(get_engine),
    negotiator: FeatureNegotiator = Depends(get_negotiator),
):
    """
    Network Slice Selection per 3GPP TS 29.531
    """
    with tracer.start_as_current_span("nssf_ns_selection") as span:
        span.set_attribute("3gpp.service", "Nnssf_NSSelection")

        params = {
            "nf-type": nf_type,
            "nf-id": nf_id,
            "supi": supi,
            "home-plmn-id": home_plmn_id,
            "tai": tai,
            "slice-info-request-for-registration": slice_info_for_registration,
            "slice-info-request-for-pdu-session": slice_info_for_pdu_session,
            "slice-info-request-for-ue-cu": slice_info_for_ue_cu,
            "supported-features": supported_features,
        }

        try:
            selection = parse_selection_request(params)
            span.set_attribute("nf.type", selection.nf_type.value)
            span.set_attribute("nf.id", selection.nf_id)

            if selection.registration is not None:
                result = await engine.select_for_registration(selection.registration, selection.context)
            elif selection.pdu_session is not None:
                result = await engine.select_for_pdu_session(selection.pdu_session, selection.context)
            else:
                result = await engine.select_for_ue_configuration_update(
                    selection.ue_configuration_update, selection.context
                )

            result.supportedFeatures = negotiator.negotiate(selection.supported_features)

        except NssfError as e:
            span.set_attribute("error", e.message)
            raise
        except Exception as e:
            span.set_attribute("error", str(e))
            logger.error(f"NS Selection failed: {e}")
            raise SelectionError(f"NS Selection failed: {e}", e) from e

        span.set_attribute("status", "SUCCESS")
        logger.info(f"NS Selection completed for NF: {selection.nf_id}")
        return JSONResponse(content=result.to_payload())


# 3GPP TS 29.531 - Nnssf_NSSAIAvailability Service

AVAILABILITY_ROOT = "/nnssf-nssaiavailability/v1/nssai-availability"


@contextmanager
def availability_span(name: str, attributes: Dict[str, str]):
    with tracer.start_as_current_span(name) as span:
        span.set_attribute("3gpp.service", "Nnssf_NSSAIAvailability")
        for key, value in attributes.items():
            span.set_attribute(key, value)
        try:
            yield span
        except NssfError as e:
            span.set_attribute("error", e.message)
            raise
        except Exception as e:
            span.set_attribute("error", str(e))
            logger.error(f"NSSAI availability request failed: {e}")
            raise NssfError(f"NSSAI availability request failed: {e}", e) from e


async def read_json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise ValidationError([{"param": "body", "reason": "must be valid JSON"}], cause="INVALID_MSG_FORMAT")


def omit_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


@app.put(f"{AVAILABILITY_ROOT}/{{nfId}}")
async def nssai_availability_put(
    request: Request,
    nfId: str = Path(..., description="AMF NF Instance ID"),
    service: NssaiAvailabilityService = Depends(get_availability_service),
):
    """
    Update NSSAI Availability information per 3GPP TS 29.531
    """
    with availability_span("nssf_nssai_availability_put", {"nf.id": nfId}):
        info = parse_availability_body(await read_json_body(request), NssaiAvailabilityInfo)
        authorized = await service.update_nf_availability(nfId, info)
        return JSONResponse(content=omit_none({
            "authorizedNssaiAvailabilityData": [a.model_dump(mode="json", exclude_none=True) for a in authorized],
            "supportedFeatures": info.supportedFeatures,
        }))


@app.delete(f"{AVAILABILITY_ROOT}/{{nfId}}", status_code=204)
async def nssai_availability_delete(
    nfId: str = Path(..., description="AMF NF Instance ID"),
    service: NssaiAvailabilityService = Depends(get_availability_service),
):
    """
    Delete NSSAI Availability information per 3GPP TS 29.531
    """
    with availability_span("nssf_nssai_availability_delete", {"nf.id": nfId}):
        await service.delete_nf_availability(nfId)
        return Response(status_code=204)


@app.post(f"{AVAILABILITY_ROOT}/subscriptions", status_code=201)
async def create_nssai_availability_subscription(
    request: Request,
    service: NssaiAvailabilityService = Depends(get_availability_service),
):
    """
    Subscribe to NSSAI availability notifications per 3GPP TS 29.531
    """
    with availability_span("nssf_nssai_availability_subscribe", {}) as span:
        create = parse_availability_body(await read_json_body(request), NssaiAvailabilitySubscriptionCreateRequest)
        subscription = await service.create_subscription(create)
        authorized = await service.get_authorized_data(
            create.subscriptionData.tai, create.subscriptionData.supportedSnssaiList
        )
        span.set_attribute("subscription.id", subscription.subscriptionId)
        return JSONResponse(
            status_code=201,
            headers={"Location": f"{AVAILABILITY_ROOT}/subscriptions/{subscription.subscriptionId}"},
            content=omit_none({
                "subscriptionId": subscription.subscriptionId,
                "authorizedNssaiAvailabilityData": [authorized.model_dump(mode="json", exclude_none=True)],
                "supportedFeatures": subscription.supportedFeatures,
            }),
        )


@app.get(f"{AVAILABILITY_ROOT}/subscriptions/{{subscriptionId}}")
async def get_nssai_availability_subscription(
    subscriptionId: str = Path(...),
    service: NssaiAvailabilityService = Depends(get_availability_service),
):
    """Get NSSAI availability subscription with the current authorized data"""
    with availability_span("nssf_nssai_availability_get", {"subscription.id": subscriptionId}):
        subscription = await service.get_subscription(subscriptionId)
        authorized = await service.get_authorized_data(
            subscription.subscriptionData.tai, subscription.subscriptionData.supportedSnssaiList
        )
        return JSONResponse(content=omit_none({
            "subscriptionId": subscription.subscriptionId,
            "nfInstanceId": subscription.nfInstanceId,
            "subscriptionData": subscription.subscriptionData.model_dump(mode="json", exclude_none=True),
            "notificationUri": subscription.notificationUri,
            "authorizedNssaiAvailabilityData": [authorized.model_dump(mode="json", exclude_none=True)],
            "supportedFeatures": subscription.supportedFeatures,
            "expiryTime": subscription.expiryTime,
        }))


@app.patch(f"{AVAILABILITY_ROOT}/subscriptions/{{subscriptionId}}")
async def update_nssai_availability_subscription(
    request: Request,
    subscriptionId: str = Path(...),
    service: NssaiAvailabilityService = Depends(get_availability_service),
):
    """Replace the subscription data of an NSSAI availability subscription"""
    with availability_span("nssf_nssai_availability_update", {"subscription.id": subscriptionId}):
        update = parse_availability_body(await read_json_body(request), NssaiAvailabilitySubscriptionUpdateRequest)
        subscription = await service.update_subscription(subscriptionId, update)
        authorized = await service.get_authorized_data(
            update.subscriptionData.tai, update.subscriptionData.supportedSnssaiList
        )
        return JSONResponse(content=omit_none({
            "subscriptionId": subscription.subscriptionId,
            "authorizedNssaiAvailabilityData": [authorized.model_dump(mode="json", exclude_none=True)],
            "supportedFeatures": subscription.supportedFeatures,
        }))


@app.delete(f"{AVAILABILITY_ROOT}/subscriptions/{{subscriptionId}}", status_code=204)
async def delete_nssai_availability_subscription(
    subscriptionId: str = Path(...),
    service: NssaiAvailabilityService = Depends(get_availability_service),
):
    """
    Delete NSSAI availability subscription
    """
    with availability_span("nssf_nssai_availability_unsubscribe", {"subscription.id": subscriptionId}):
        await service.delete_subscription(subscriptionId)
        return Response(status_code=204)


# Health and monitoring

@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "NSSF",
        "compliance": "3GPP TS 29.531",
        "version": "1.0.0",
    }


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="NSSF - Network Slice Selection Function")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=get_port("nssf"), help="Port to bind to")
    args = parser.parse_args()
    uvicorn.run(app, host=args.host, port=args.port)
