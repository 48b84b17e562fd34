# File location: nssf/slice_selection/policy.py
# Slice policy evaluation - time windows, service areas and load limits

"""
Policy Evaluator

Every enabled policy attached to a (S-NSSAI, PLMN) pair must pass for the
slice to be allowed. Each policy is checked in the order time, area, load;
the first failing check decides that policy's outcome.
"""

import inspect
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Union

from .models import (
    PlmnId,
    PolicyDecision,
    PolicyEvaluationResult,
    SliceConfiguration,
    SlicePolicy,
    Snssai,
    Tai,
    TimeWindow,
    UeSubscription,
    tai_in_list,
)
from .repository import SliceRepository

logger = logging.getLogger(__name__)

# Load signal for a slice; sync or async
LoadProvider = Callable[[Snssai, PlmnId], Union[int, Awaitable[int]]]


def zero_load(snssai: Snssai, plmn_id: PlmnId) -> int:
    return 0


def _in_window(window: TimeWindow, now: datetime) -> bool:
    if window.daysOfWeek:
        # 0 = Sunday
        if now.isoweekday() % 7 not in window.daysOfWeek:
            return False
    current = now.strftime("%H:%M")
    return window.startTime <= current <= window.endTime


class PolicyEvaluator:
    """Evaluates the enabled policies of a slice for one request"""

    def __init__(self, repository: SliceRepository, load_provider: Optional[LoadProvider] = None):
        self.repository = repository
        self.load_provider = load_provider or zero_load

    async def evaluate(
        self,
        snssai: Snssai,
        plmn_id: PlmnId,
        tai: Optional[Tai] = None,
        subscription: Optional[UeSubscription] = None,
        slice_config: Optional[SliceConfiguration] = None,
        current_time: Optional[datetime] = None,
    ) -> PolicyEvaluationResult:
        policies = await self.repository.get_policies(snssai, plmn_id)
        if not policies:
            return PolicyEvaluationResult(allowed=True)

        now = current_time or datetime.now()
        reasons: List[str] = []
        for policy in policies:
            decision = await self.evaluate_policy(policy, tai, now)
            if not decision.allowed:
                reasons.append(f"Policy {decision.policyId}: {decision.reason}")

        if reasons:
            logger.debug(f"S-NSSAI {snssai} denied by policy: {reasons}")
        return PolicyEvaluationResult(allowed=not reasons, reasons=reasons)

    async def evaluate_policy(self, policy: SlicePolicy, tai: Optional[Tai], now: datetime) -> PolicyDecision:
        for check in (self._check_time(policy, now), self._check_area(policy, tai)):
            if check is not None:
                return PolicyDecision(allowed=False, reason=check, policyId=policy.policyId)

        reason = await self._check_load(policy)
        if reason is not None:
            return PolicyDecision(allowed=False, reason=reason, policyId=policy.policyId)
        return PolicyDecision(allowed=True, policyId=policy.policyId)

    @staticmethod
    def _check_time(policy: SlicePolicy, now: datetime) -> Optional[str]:
        if policy.allowedTimeWindows:
            if not any(_in_window(w, now) for w in policy.allowedTimeWindows):
                return "Current time outside allowed time windows"
        if policy.deniedTimeWindows:
            if any(_in_window(w, now) for w in policy.deniedTimeWindows):
                return "Current time within denied time window"
        return None

    @staticmethod
    def _check_area(policy: SlicePolicy, tai: Optional[Tai]) -> Optional[str]:
        if tai is None:
            return None
        if policy.deniedTaiList and tai_in_list(tai, policy.deniedTaiList):
            return "TAI is in denied list"
        if policy.allowedTaiList and not tai_in_list(tai, policy.allowedTaiList):
            return "TAI not in allowed list"
        return None

    async def _check_load(self, policy: SlicePolicy) -> Optional[str]:
        if policy.maxLoadLevel is None:
            return None
        load = self.load_provider(policy.snssai, policy.plmnId)
        if inspect.isawaitable(load):
            load = await load
        if load > policy.maxLoadLevel:
            return f"Load level {load} exceeds maximum {policy.maxLoadLevel}"
        return None
