# File location: nssf/slice_selection/nsi_selection.py
# Network Slice Instance ranking

import logging
from typing import List, Optional

from .models import NsiConfiguration, NsiInformation, PlmnId, Snssai, Tai, tai_in_list
from .repository import SliceRepository

logger = logging.getLogger(__name__)


def _available_in(nsi: NsiConfiguration, tai: Optional[Tai]) -> bool:
    if tai is None or not nsi.taiList:
        return True
    return tai_in_list(tai, nsi.taiList)


def rank_nsis(nsis: List[NsiConfiguration]) -> List[NsiConfiguration]:
    """Priority descending, then load ascending; ties keep input order"""
    return sorted(nsis, key=lambda n: (-(n.priority or 0), n.loadLevel or 0))


class NsiSelector:
    def __init__(self, repository: SliceRepository):
        self.repository = repository

    async def select(self, snssai: Snssai, plmn_id: PlmnId, tai: Optional[Tai] = None) -> List[NsiInformation]:
        nsis = await self.repository.get_nsi_configurations(snssai, plmn_id)
        ranked = rank_nsis([nsi for nsi in nsis if _available_in(nsi, tai)])
        logger.debug(f"{len(ranked)} NSI(s) available for S-NSSAI {snssai}")
        return [
            NsiInformation(
                nrfId=nsi.nrfId,
                nsiId=nsi.nsiId,
                nrfNfMgtUri=nsi.nrfNfMgtUri,
                nrfAccessTokenUri=nsi.nrfAccessTokenUri,
                nrfOauth2Required=nsi.nrfOauth2Required,
            )
            for nsi in ranked
        ]
