# File location: nssf/slice_selection/repository.py
# Typed access to the NSSF configuration collections

"""
Slice Selection Repository

Wraps the document collections provided by core_network.db and converts
documents to the pydantic configuration models. Every composite-key lookup
is an exact match on (sst, sd) and (mcc, mnc). Store failures are
reclassified into DatabaseError and re-raised; nothing is retried here.
"""

import logging
from typing import Dict, List, Optional, Type, Union

from pydantic import BaseModel
from pymongo import ReturnDocument

from core_network.db import Collections, Database
from .errors import DatabaseError, handle_database_error
from .models import (
    AdmissionGroupKind,
    AmfInstanceConfig,
    AmfServiceSetConfig,
    AmfSetConfig,
    NfNssaiAvailability,
    NsagConfiguration,
    NsiConfiguration,
    NssaiAvailabilitySubscription,
    NssrgConfiguration,
    PlmnId,
    SliceConfiguration,
    SlicePolicy,
    Snssai,
    SnssaiMapping,
    Tai,
    UeSubscription,
)

logger = logging.getLogger(__name__)


def snssai_filter(prefix: str, snssai: Snssai) -> Dict:
    return {f"{prefix}.sst": snssai.sst, f"{prefix}.sd": snssai.sd}


def plmn_filter(prefix: str, plmn_id: PlmnId) -> Dict:
    return {f"{prefix}.mcc": plmn_id.mcc, f"{prefix}.mnc": plmn_id.mnc}


# Admission group collections and the field holding each group's id
_GROUP_COLLECTIONS = {
    AdmissionGroupKind.NSAG: (Collections.NSAGS, "nsagId", NsagConfiguration),
    AdmissionGroupKind.NSSRG: (Collections.NSSRGS, "nssrgId", NssrgConfiguration),
}


class SliceRepository:
    """Read and conditional-update access to every collection the engine consults"""

    def __init__(self, database: Database):
        self.database = database

    def _collection(self, name: str):
        return self.database.get_collection(name)

    async def _find(self, name: str, query: Dict, model: Type[BaseModel]) -> List:
        try:
            docs = await self._collection(name).find(query).to_list(length=None)
        except Exception as e:
            logger.error(f"Query on {name} failed: {e}")
            raise handle_database_error(e)
        return [model(**doc) for doc in docs]

    async def _find_one(self, name: str, query: Dict, model: Type[BaseModel]):
        try:
            doc = await self._collection(name).find_one(query)
        except Exception as e:
            logger.error(f"Lookup on {name} failed: {e}")
            raise handle_database_error(e)
        return model(**doc) if doc else None

    async def _insert(self, name: str, entity: BaseModel):
        try:
            await self._collection(name).insert_one(entity.model_dump(mode="json"))
        except Exception as e:
            logger.error(f"Insert into {name} failed: {e}")
            raise handle_database_error(e)
        return entity

    async def _delete(self, name: str, query: Dict) -> bool:
        try:
            result = await self._collection(name).delete_one(query)
        except Exception as e:
            logger.error(f"Delete on {name} failed: {e}")
            raise handle_database_error(e)
        return result.deleted_count > 0

    # ------------------------------------------------------------------
    # Subscriptions and slice catalog
    # ------------------------------------------------------------------

    async def get_subscription(self, supi: str, plmn_id: PlmnId) -> Optional[UeSubscription]:
        query = {"supi": supi, **plmn_filter("plmnId", plmn_id)}
        return await self._find_one(Collections.SUBSCRIPTIONS, query, UeSubscription)

    async def list_slices(self) -> List[SliceConfiguration]:
        return await self._find(Collections.SLICES, {}, SliceConfiguration)

    async def get_slice(self, snssai: Snssai, plmn_id: PlmnId) -> Optional[SliceConfiguration]:
        query = {**snssai_filter("snssai", snssai), **plmn_filter("plmnId", plmn_id)}
        return await self._find_one(Collections.SLICES, query, SliceConfiguration)

    async def get_policies(self, snssai: Snssai, plmn_id: PlmnId) -> List[SlicePolicy]:
        """Enabled policies attached to a slice"""
        query = {**snssai_filter("snssai", snssai), **plmn_filter("plmnId", plmn_id), "enabled": True}
        return await self._find(Collections.POLICIES, query, SlicePolicy)

    # ------------------------------------------------------------------
    # Admission groups
    # ------------------------------------------------------------------

    async def list_admission_groups(
        self, kind: AdmissionGroupKind
    ) -> List[Union[NsagConfiguration, NssrgConfiguration]]:
        name, _, model = _GROUP_COLLECTIONS[kind]
        return await self._find(name, {}, model)

    async def increment_group_count(self, kind: AdmissionGroupKind, group_id: Union[int, str]) -> bool:
        """
        Increment currentUeCount only while the group is below maxUeCount.
        Check and increment are one store operation, so two concurrent
        admissions can never both take the last free slot.
        """
        name, id_field, _ = _GROUP_COLLECTIONS[kind]
        query = {
            id_field: group_id,
            "$or": [
                {"maxUeCount": None},
                {"$expr": {"$lt": ["$currentUeCount", "$maxUeCount"]}},
            ],
        }
        try:
            doc = await self._collection(name).find_one_and_update(
                query, {"$inc": {"currentUeCount": 1}}, return_document=ReturnDocument.AFTER
            )
        except Exception as e:
            logger.error(f"Counter increment on {kind.value} {group_id} failed: {e}")
            raise handle_database_error(e)
        return doc is not None

    async def decrement_group_count(self, kind: AdmissionGroupKind, group_id: Union[int, str]) -> bool:
        name, id_field, _ = _GROUP_COLLECTIONS[kind]
        query = {id_field: group_id, "currentUeCount": {"$gt": 0}}
        try:
            doc = await self._collection(name).find_one_and_update(
                query, {"$inc": {"currentUeCount": -1}}, return_document=ReturnDocument.AFTER
            )
        except Exception as e:
            logger.error(f"Counter decrement on {kind.value} {group_id} failed: {e}")
            raise handle_database_error(e)
        return doc is not None

    # ------------------------------------------------------------------
    # S-NSSAI mappings
    # ------------------------------------------------------------------

    async def find_mappings_by_serving(
        self, serving_snssai: Snssai, serving_plmn: PlmnId, home_plmn: PlmnId
    ) -> List[SnssaiMapping]:
        query = {
            **snssai_filter("servingSnssai", serving_snssai),
            **plmn_filter("servingPlmnId", serving_plmn),
            **plmn_filter("homePlmnId", home_plmn),
        }
        return await self._find(Collections.SNSSAI_MAPPINGS, query, SnssaiMapping)

    async def find_mappings_by_home(
        self, home_snssai: Snssai, serving_plmn: PlmnId, home_plmn: PlmnId
    ) -> List[SnssaiMapping]:
        query = {
            **snssai_filter("homeSnssai", home_snssai),
            **plmn_filter("servingPlmnId", serving_plmn),
            **plmn_filter("homePlmnId", home_plmn),
        }
        return await self._find(Collections.SNSSAI_MAPPINGS, query, SnssaiMapping)

    async def create_mapping(self, mapping: SnssaiMapping) -> SnssaiMapping:
        """Store a new mapping; a second mapping for the same serving key is rejected"""
        existing = await self.find_mappings_by_serving(
            mapping.servingSnssai, mapping.servingPlmnId, mapping.homePlmnId
        )
        if existing:
            raise DatabaseError("S-NSSAI mapping already exists")

        serving, home = mapping.servingPlmnId, mapping.homePlmnId
        mapping_id = (
            f"mapping-{serving.mcc}{serving.mnc}-{home.mcc}{home.mnc}-"
            f"{mapping.servingSnssai.sst}{mapping.servingSnssai.sd or ''}"
        )
        stored = mapping.model_copy(update={"mappingId": mapping_id})
        await self._insert(Collections.SNSSAI_MAPPINGS, stored)
        logger.info(f"Created S-NSSAI mapping {mapping_id}")
        return stored

    # ------------------------------------------------------------------
    # NSI and AMF configuration
    # ------------------------------------------------------------------

    async def get_nsi_configurations(self, snssai: Snssai, plmn_id: PlmnId) -> List[NsiConfiguration]:
        query = {**snssai_filter("snssai", snssai), **plmn_filter("plmnId", plmn_id)}
        return await self._find(Collections.NSI, query, NsiConfiguration)

    async def get_amf_sets(self, plmn_id: PlmnId) -> List[AmfSetConfig]:
        return await self._find(Collections.AMF_SETS, plmn_filter("plmnId", plmn_id), AmfSetConfig)

    async def get_amf_service_sets(self, amf_set_id: str, plmn_id: PlmnId) -> List[AmfServiceSetConfig]:
        query = {"amfSetId": amf_set_id, **plmn_filter("plmnId", plmn_id)}
        return await self._find(Collections.AMF_SERVICE_SETS, query, AmfServiceSetConfig)

    async def get_amf_instances(
        self, amf_set_id: str, plmn_id: PlmnId, amf_service_set_id: Optional[str] = None
    ) -> List[AmfInstanceConfig]:
        query = {"amfSetId": amf_set_id, **plmn_filter("plmnId", plmn_id)}
        if amf_service_set_id:
            query["amfServiceSetId"] = amf_service_set_id
        return await self._find(Collections.AMF_INSTANCES, query, AmfInstanceConfig)

    # ------------------------------------------------------------------
    # NSSAI availability
    # ------------------------------------------------------------------

    async def list_slices_in_plmn(self, plmn_id: PlmnId) -> List[SliceConfiguration]:
        return await self._find(Collections.SLICES, plmn_filter("plmnId", plmn_id), SliceConfiguration)

    async def add_availability_subscription(
        self, subscription: NssaiAvailabilitySubscription
    ) -> NssaiAvailabilitySubscription:
        return await self._insert(Collections.NSSAI_AVAILABILITY_SUBSCRIPTIONS, subscription)

    async def get_availability_subscription(self, subscription_id: str) -> Optional[NssaiAvailabilitySubscription]:
        return await self._find_one(
            Collections.NSSAI_AVAILABILITY_SUBSCRIPTIONS,
            {"subscriptionId": subscription_id},
            NssaiAvailabilitySubscription,
        )

    async def update_availability_subscription(
        self, subscription_id: str, fields: Dict
    ) -> Optional[NssaiAvailabilitySubscription]:
        try:
            doc = await self._collection(Collections.NSSAI_AVAILABILITY_SUBSCRIPTIONS).find_one_and_update(
                {"subscriptionId": subscription_id}, {"$set": fields}, return_document=ReturnDocument.AFTER
            )
        except Exception as e:
            logger.error(f"Update of NSSAI availability subscription {subscription_id} failed: {e}")
            raise handle_database_error(e)
        return NssaiAvailabilitySubscription(**doc) if doc else None

    async def delete_availability_subscription(self, subscription_id: str) -> bool:
        return await self._delete(Collections.NSSAI_AVAILABILITY_SUBSCRIPTIONS, {"subscriptionId": subscription_id})

    async def find_availability_subscriptions_for_tai(self, tai: Tai) -> List[NssaiAvailabilitySubscription]:
        query = {**plmn_filter("subscriptionData.tai.plmnId", tai.plmnId), "subscriptionData.tai.tac": tai.tac}
        return await self._find(Collections.NSSAI_AVAILABILITY_SUBSCRIPTIONS, query, NssaiAvailabilitySubscription)

    async def save_nf_availability(self, record: NfNssaiAvailability) -> NfNssaiAvailability:
        """Store an AMF availability report, replacing the previous report of that AMF"""
        try:
            await self._collection(Collections.NSSAI_AVAILABILITY).replace_one(
                {"nfId": record.nfId}, record.model_dump(mode="json"), upsert=True
            )
        except Exception as e:
            logger.error(f"Saving NSSAI availability of {record.nfId} failed: {e}")
            raise handle_database_error(e)
        return record

    async def get_nf_availability(self, nf_id: str) -> Optional[NfNssaiAvailability]:
        return await self._find_one(Collections.NSSAI_AVAILABILITY, {"nfId": nf_id}, NfNssaiAvailability)

    async def delete_nf_availability(self, nf_id: str) -> bool:
        return await self._delete(Collections.NSSAI_AVAILABILITY, {"nfId": nf_id})

    # ------------------------------------------------------------------
    # Writers used by seeding and tests
    # ------------------------------------------------------------------

    async def add_subscription(self, subscription: UeSubscription) -> UeSubscription:
        return await self._insert(Collections.SUBSCRIPTIONS, subscription)

    async def add_slice(self, slice_config: SliceConfiguration) -> SliceConfiguration:
        return await self._insert(Collections.SLICES, slice_config)

    async def add_policy(self, policy: SlicePolicy) -> SlicePolicy:
        return await self._insert(Collections.POLICIES, policy)

    async def add_nsag(self, nsag: NsagConfiguration) -> NsagConfiguration:
        return await self._insert(Collections.NSAGS, nsag)

    async def add_nssrg(self, nssrg: NssrgConfiguration) -> NssrgConfiguration:
        return await self._insert(Collections.NSSRGS, nssrg)

    async def add_nsi(self, nsi: NsiConfiguration) -> NsiConfiguration:
        return await self._insert(Collections.NSI, nsi)

    async def add_amf_set(self, amf_set: AmfSetConfig) -> AmfSetConfig:
        return await self._insert(Collections.AMF_SETS, amf_set)

    async def add_amf_service_set(self, service_set: AmfServiceSetConfig) -> AmfServiceSetConfig:
        return await self._insert(Collections.AMF_SERVICE_SETS, service_set)

    async def add_amf_instance(self, instance: AmfInstanceConfig) -> AmfInstanceConfig:
        return await self._insert(Collections.AMF_INSTANCES, instance)
