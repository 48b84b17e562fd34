# File location: nssf/slice_selection/mapping.py
# Serving <-> home S-NSSAI mapping for roaming subscribers

import logging
from typing import List, Optional

from .models import MappingOfSnssai, PlmnId, Snssai, SnssaiMapping, Tai
from .repository import SliceRepository

logger = logging.getLogger(__name__)


def _first_valid(mappings: List[SnssaiMapping], tai: Optional[Tai]) -> Optional[SnssaiMapping]:
    for mapping in mappings:
        if mapping.is_valid_in(tai):
            return mapping
    return None


class MappingResolver:
    """
    Resolves S-NSSAI equivalence between a serving and a home PLMN.

    Mappings are directional; the reverse lookup is a separate query keyed on
    the home S-NSSAI. A missing mapping is reported as None, never as an error.
    """

    def __init__(self, repository: SliceRepository):
        self.repository = repository

    async def get_home_snssai(
        self,
        serving_snssai: Snssai,
        serving_plmn: PlmnId,
        home_plmn: PlmnId,
        tai: Optional[Tai] = None,
    ) -> Optional[Snssai]:
        mappings = await self.repository.find_mappings_by_serving(serving_snssai, serving_plmn, home_plmn)
        mapping = _first_valid(mappings, tai)
        if mapping is None:
            logger.debug(f"No home mapping for serving S-NSSAI {serving_snssai}")
            return None
        return mapping.homeSnssai

    async def get_serving_snssai(
        self,
        home_snssai: Snssai,
        serving_plmn: PlmnId,
        home_plmn: PlmnId,
        tai: Optional[Tai] = None,
    ) -> Optional[Snssai]:
        mappings = await self.repository.find_mappings_by_home(home_snssai, serving_plmn, home_plmn)
        mapping = _first_valid(mappings, tai)
        return mapping.servingSnssai if mapping else None

    async def resolve_batch(
        self,
        serving_list: List[Snssai],
        serving_plmn: PlmnId,
        home_plmn: PlmnId,
        tai: Optional[Tai] = None,
    ) -> List[MappingOfSnssai]:
        """Map each serving S-NSSAI; entries without a mapping are left out"""
        result = []
        for serving in serving_list:
            home = await self.get_home_snssai(serving, serving_plmn, home_plmn, tai)
            if home is not None:
                result.append(MappingOfSnssai(servingSnssai=serving, homeSnssai=home))
        return result
