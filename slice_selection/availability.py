# File location: nssf/slice_selection/availability.py
# Nnssf_NSSAIAvailability - NSSAI availability per tracking area (3GPP TS 29.531)

"""
NSSAI Availability Service

AMFs report the S-NSSAIs they support per TA; NFs subscribe to the
authorized NSSAI availability of a TA and are notified when it changes.
The authorized view of a TA is the checked S-NSSAI list split into:

- supported: configured in the TA's PLMN and available in the TA
- restricted NOT_ALLOWED: not configured in the TA's PLMN
- restricted RESTRICTED_IN_TAI: configured, but its TAI list excludes the TA
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

import httpx

from config import settings
from .errors import NotFoundError
from .models import (
    AuthorizedNssaiAvailabilityData,
    NfNssaiAvailability,
    NssaiAvailabilityInfo,
    NssaiAvailabilityNotification,
    NssaiAvailabilitySubscription,
    NssaiAvailabilitySubscriptionCreateRequest,
    NssaiAvailabilitySubscriptionUpdateRequest,
    RestrictedSnssai,
    RestrictionType,
    Snssai,
    Tai,
)
from .repository import SliceRepository

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class NssaiAvailabilityService:
    """Authorized NSSAI availability, AMF reports and availability subscriptions"""

    def __init__(
        self,
        repository: SliceRepository,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = settings.NSSF_NOTIFICATION_TIMEOUT,
    ):
        self.repository = repository
        self.http_client = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self.timeout = timeout

    async def close(self):
        await self.http_client.aclose()

    async def get_authorized_data(
        self, tai: Tai, supported: Optional[List[Snssai]] = None
    ) -> AuthorizedNssaiAvailabilityData:
        slices = await self.repository.list_slices_in_plmn(tai.plmnId)
        checked = supported if supported is not None else [s.snssai for s in slices]

        available: List[Snssai] = []
        restricted: List[RestrictedSnssai] = []
        for snssai in checked:
            slice_config = next((s for s in slices if s.snssai == snssai), None)
            if slice_config is None:
                restricted.append(RestrictedSnssai(snssai=snssai, restrictionType=RestrictionType.NOT_ALLOWED))
            elif not slice_config.is_available_in(tai):
                restricted.append(RestrictedSnssai(snssai=snssai, restrictionType=RestrictionType.RESTRICTED_IN_TAI))
            else:
                available.append(snssai)

        return AuthorizedNssaiAvailabilityData(
            tai=tai,
            supportedSnssaiList=available,
            restrictedSnssaiList=restricted or None,
        )

    # ------------------------------------------------------------------
    # AMF availability reports
    # ------------------------------------------------------------------

    async def update_nf_availability(
        self, nf_id: str, info: NssaiAvailabilityInfo
    ) -> List[AuthorizedNssaiAvailabilityData]:
        """Store an AMF report and notify the subscribers of every reported TA"""
        await self.repository.save_nf_availability(NfNssaiAvailability(nfId=nf_id, **info.model_dump()))
        logger.info(f"NSSAI availability updated for AMF: {nf_id}")

        authorized = []
        for entry in info.supportedNssaiAvailabilityData:
            authorized.append(await self.get_authorized_data(entry.tai, entry.supportedSnssaiList))
            await self.notify_change(entry.tai, entry.supportedSnssaiList)
        return authorized

    async def delete_nf_availability(self, nf_id: str):
        if not await self.repository.delete_nf_availability(nf_id):
            raise NotFoundError(f"NSSAI availability of {nf_id} not found")
        logger.info(f"NSSAI availability deleted for AMF: {nf_id}")

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def create_subscription(
        self, request: NssaiAvailabilitySubscriptionCreateRequest
    ) -> NssaiAvailabilitySubscription:
        now = _now()
        subscription = NssaiAvailabilitySubscription(
            subscriptionId=str(uuid.uuid4()),
            createdAt=now,
            updatedAt=now,
            **request.model_dump(),
        )
        await self.repository.add_availability_subscription(subscription)
        logger.info(f"NSSAI availability subscription created: {subscription.subscriptionId}")
        return subscription

    async def get_subscription(self, subscription_id: str) -> NssaiAvailabilitySubscription:
        subscription = await self.repository.get_availability_subscription(subscription_id)
        if subscription is None:
            raise NotFoundError(f"Subscription {subscription_id} not found", cause="SUBSCRIPTION_NOT_FOUND")
        return subscription

    async def update_subscription(
        self, subscription_id: str, update: NssaiAvailabilitySubscriptionUpdateRequest
    ) -> NssaiAvailabilitySubscription:
        fields = update.model_dump(mode="json", exclude_none=True)
        fields["updatedAt"] = _now()
        subscription = await self.repository.update_availability_subscription(subscription_id, fields)
        if subscription is None:
            raise NotFoundError(f"Subscription {subscription_id} not found", cause="SUBSCRIPTION_NOT_FOUND")
        logger.info(f"NSSAI availability subscription updated: {subscription_id}")
        return subscription

    async def delete_subscription(self, subscription_id: str):
        if not await self.repository.delete_availability_subscription(subscription_id):
            raise NotFoundError(f"Subscription {subscription_id} not found", cause="SUBSCRIPTION_NOT_FOUND")
        logger.info(f"NSSAI availability subscription deleted: {subscription_id}")

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def notify_change(self, tai: Tai, supported: Optional[List[Snssai]] = None) -> int:
        """Notify every subscriber of the TA; returns the number of deliveries accepted"""
        subscriptions = await self.repository.find_availability_subscriptions_for_tai(tai)
        if not subscriptions:
            return 0

        authorized = await self.get_authorized_data(tai, supported)
        delivered = 0
        for subscription in subscriptions:
            notification = NssaiAvailabilityNotification(
                subscriptionId=subscription.subscriptionId,
                authorizedNssaiAvailabilityData=[authorized],
            )
            if await self.send_notification(subscription.notificationUri, notification):
                delivered += 1
        logger.info(f"NSSAI availability change for TAC {tai.tac} delivered to {delivered}/{len(subscriptions)}")
        return delivered

    async def send_notification(self, destination: str, notification: NssaiAvailabilityNotification) -> bool:
        try:
            response = await self.http_client.post(
                destination,
                json=notification.model_dump(mode="json", exclude_none=True),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Failed to send NSSAI availability notification to {destination}: {e}")
            return False
        if response.status_code not in (200, 201, 204):
            logger.warning(f"NSSAI availability notification to {destination} answered {response.status_code}")
            return False
        return True
