# File location: nssf/slice_selection/admission.py
# NSAG / NSSRG admission control - capacity-bounded admission groups

"""
Admission Controller

Network Slice Admission Groups (NSAG) and Network Slice Simultaneous
Registration Groups (NSSRG) cap the number of subscribers per group. Both
kinds share one mechanism:

- Candidate groups are enabled, in the request PLMN, list the S-NSSAI and,
  when a TAI is given, cover it by exact TAI or TAC range.
- Candidates are tried by priority, highest first. A group without
  maxUeCount is unlimited; otherwise it admits while currentUeCount is
  below maxUeCount.
- An S-NSSAI covered by no group is not restricted by this mechanism.

check_admission is a read-only decision. admit performs the capacity check
and the increment as one conditional update in the store.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Union

from .models import (
    AdmissionGroup,
    AdmissionGroupKind,
    AdmissionResult,
    PlmnId,
    Snssai,
    Tai,
)
from .repository import SliceRepository

logger = logging.getLogger(__name__)


def _has_capacity(group: AdmissionGroup) -> bool:
    return group.maxUeCount is None or group.currentUeCount < group.maxUeCount


class AdmissionController:
    """Capacity checks and counter updates for NSAG and NSSRG groups"""

    def __init__(self, repository: SliceRepository):
        self.repository = repository

    async def matching_groups(
        self,
        kind: AdmissionGroupKind,
        snssai: Snssai,
        plmn_id: PlmnId,
        tai: Optional[Tai] = None,
    ) -> List[AdmissionGroup]:
        """Groups covering the S-NSSAI, highest priority first (stable)"""
        groups = await self.repository.list_admission_groups(kind)
        matching = [
            group for group in groups
            if group.enabled
            and group.plmnId == plmn_id
            and snssai in group.snssaiList
            and (tai is None or group.covers_tai(tai))
        ]
        return sorted(matching, key=lambda g: -(g.priority or 0))

    async def check_admission(
        self,
        kind: AdmissionGroupKind,
        snssai: Snssai,
        plmn_id: PlmnId,
        tai: Optional[Tai] = None,
    ) -> AdmissionResult:
        groups = await self.matching_groups(kind, snssai, plmn_id, tai)
        if not groups:
            return AdmissionResult(admitted=True)

        for group in groups:
            if _has_capacity(group):
                return AdmissionResult(admitted=True, groupId=group.group_id)

        logger.info(f"{kind.value} capacity exceeded for S-NSSAI {snssai}")
        return AdmissionResult(admitted=False, reason=f"{kind.value} capacity exceeded")

    async def get_group_for_snssai(
        self,
        kind: AdmissionGroupKind,
        snssai: Snssai,
        plmn_id: PlmnId,
        tai: Optional[Tai] = None,
    ) -> Optional[AdmissionGroup]:
        """Highest priority matching group, without a capacity check"""
        groups = await self.matching_groups(kind, snssai, plmn_id, tai)
        return groups[0] if groups else None

    async def check_nsag_admission(
        self, snssai: Snssai, plmn_id: PlmnId, tai: Optional[Tai] = None
    ) -> AdmissionResult:
        return await self.check_admission(AdmissionGroupKind.NSAG, snssai, plmn_id, tai)

    async def assign_nssrg(
        self, snssai: Snssai, plmn_id: PlmnId, tai: Optional[Tai] = None
    ) -> AdmissionResult:
        """Pick the NSSRG for an S-NSSAI; unlike NSAG, no matching group means not assigned"""
        groups = await self.matching_groups(AdmissionGroupKind.NSSRG, snssai, plmn_id, tai)
        if not groups:
            return AdmissionResult(admitted=False, reason="No matching NSSRG found")
        return await self.check_admission(AdmissionGroupKind.NSSRG, snssai, plmn_id, tai)

    async def admit(
        self,
        kind: AdmissionGroupKind,
        snssai: Snssai,
        plmn_id: PlmnId,
        tai: Optional[Tai] = None,
    ) -> AdmissionResult:
        """Check capacity and take a slot in the first group that still has one"""
        groups = await self.matching_groups(kind, snssai, plmn_id, tai)
        if not groups:
            return AdmissionResult(admitted=True)

        for group in groups:
            if await self.repository.increment_group_count(kind, group.group_id):
                logger.info(f"Admitted S-NSSAI {snssai} into {kind.value} {group.group_id}")
                return AdmissionResult(admitted=True, groupId=group.group_id)

        logger.info(f"{kind.value} capacity exceeded for S-NSSAI {snssai}")
        return AdmissionResult(admitted=False, reason=f"{kind.value} capacity exceeded")

    async def release(self, kind: AdmissionGroupKind, group_id: Union[int, str]) -> bool:
        """Give back a slot; the counter never drops below zero"""
        released = await self.repository.decrement_group_count(kind, group_id)
        if not released:
            logger.warning(f"Release on {kind.value} {group_id} ignored, counter already at zero")
        return released


class AdmissionHook(ABC):
    """Called with the S-NSSAIs a decision allowed; must not change the decision"""

    @abstractmethod
    async def on_accepted(
        self, snssais: Sequence[Snssai], plmn_id: PlmnId, tai: Optional[Tai] = None
    ) -> List[AdmissionResult]:
        """Account for the accepted S-NSSAIs, one result per S-NSSAI"""


class AdmissionAccounting(AdmissionHook):
    """Takes one NSAG slot per accepted S-NSSAI"""

    def __init__(self, controller: AdmissionController, kind: AdmissionGroupKind = AdmissionGroupKind.NSAG):
        self.controller = controller
        self.kind = kind

    async def on_accepted(
        self, snssais: Sequence[Snssai], plmn_id: PlmnId, tai: Optional[Tai] = None
    ) -> List[AdmissionResult]:
        results = []
        for snssai in snssais:
            result = await self.controller.admit(self.kind, snssai, plmn_id, tai)
            if not result.admitted:
                logger.warning(f"Accounting for S-NSSAI {snssai} refused: {result.reason}")
            results.append(result)
        return results
