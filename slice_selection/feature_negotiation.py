# File location: nssf/slice_selection/feature_negotiation.py
# Supported-features negotiation for the Nnssf_NSSelection service

"""
Feature strings are hex encoded bitmasks: the last character carries
features 0-3, the one before it features 4-7, and so on. Negotiation keeps
the bits both sides support and re-encodes them without zero padding.
"""

import logging
import re
from enum import IntEnum
from typing import Optional

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")


class NssfFeature(IntEnum):
    NSSRG = 0
    NSAG = 1
    ENHANCED_ROAMING = 2
    SLICE_PRIORITY = 3
    DYNAMIC_MAPPING = 4


# Features this NSSF implements
SUPPORTED_FEATURES = {
    NssfFeature.NSSRG: False,
    NssfFeature.NSAG: False,
    NssfFeature.ENHANCED_ROAMING: True,
    NssfFeature.SLICE_PRIORITY: True,
    NssfFeature.DYNAMIC_MAPPING: True,
}


def _parse(features: Optional[str]) -> int:
    """Decode a feature string; absent or non-hex input carries no bits"""
    if not features or not _HEX_RE.match(features):
        return 0
    return int(features, 16)


def _encode(mask: int) -> str:
    return format(mask, "x")


class FeatureNegotiator:
    """Intersects a consumer's supported features with the local support table"""

    def __init__(self, supported: dict = None):
        table = SUPPORTED_FEATURES if supported is None else supported
        self.support_mask = 0
        for feature, enabled in table.items():
            if enabled:
                self.support_mask |= 1 << int(feature)

    @property
    def supported_features(self) -> str:
        return _encode(self.support_mask)

    def negotiate(self, consumer_features: Optional[str]) -> Optional[str]:
        """Return the common feature string, or None when nothing is shared"""
        if not consumer_features or not _HEX_RE.match(consumer_features):
            if consumer_features:
                logger.debug(f"Ignoring malformed supported-features value: {consumer_features!r}")
            return None

        negotiated = _parse(consumer_features) & self.support_mask
        if negotiated == 0:
            return None
        return _encode(negotiated)

    @staticmethod
    def is_feature_supported(negotiated: Optional[str], feature: NssfFeature) -> bool:
        return bool(_parse(negotiated) >> int(feature) & 1)

    @staticmethod
    def validate_required(negotiated: Optional[str], required: Optional[str]) -> bool:
        """Every bit set in required must also be set in negotiated"""
        if not required:
            return True
        if not negotiated:
            return False
        required_mask = _parse(required)
        return _parse(negotiated) & required_mask == required_mask
