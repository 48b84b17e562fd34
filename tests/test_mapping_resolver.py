"""
Tests for serving <-> home S-NSSAI mapping.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent))
from conftest import EMBB, EMBB_NO_SD, HOME_PLMN, MIOT, OTHER_PLMN, URLLC, VISITED_PLMN, VISITED_TAI, run

from slice_selection.errors import DatabaseError
from slice_selection.mapping import MappingResolver
from slice_selection.models import Snssai, SnssaiMapping, Tai

SERVING_EMBB = Snssai(sst=1, sd="000001")
SERVING_URLLC = Snssai(sst=2, sd="000002")


def mapping(serving, home, **kwargs) -> SnssaiMapping:
    kwargs.setdefault("servingPlmnId", VISITED_PLMN)
    kwargs.setdefault("homePlmnId", HOME_PLMN)
    return SnssaiMapping(servingSnssai=serving, homeSnssai=home, **kwargs)


@pytest.fixture
def resolver(repository):
    return MappingResolver(repository)


@pytest.mark.components
class TestLookup:

    def test_forward_and_reverse(self, repository, resolver):
        run(repository.create_mapping(mapping(SERVING_EMBB, EMBB)))
        assert run(resolver.get_home_snssai(SERVING_EMBB, VISITED_PLMN, HOME_PLMN)) == EMBB
        assert run(resolver.get_serving_snssai(EMBB, VISITED_PLMN, HOME_PLMN)) == SERVING_EMBB

    def test_missing_mapping_is_none(self, resolver):
        assert run(resolver.get_home_snssai(SERVING_EMBB, VISITED_PLMN, HOME_PLMN)) is None
        assert run(resolver.get_serving_snssai(EMBB, VISITED_PLMN, HOME_PLMN)) is None

    def test_plmn_pair_is_part_of_the_key(self, repository, resolver):
        run(repository.create_mapping(mapping(SERVING_EMBB, EMBB)))
        assert run(resolver.get_home_snssai(SERVING_EMBB, OTHER_PLMN, HOME_PLMN)) is None
        assert run(resolver.get_home_snssai(SERVING_EMBB, VISITED_PLMN, OTHER_PLMN)) is None

    def test_sd_is_part_of_the_key(self, repository, resolver):
        run(repository.create_mapping(mapping(EMBB_NO_SD, EMBB)))
        assert run(resolver.get_home_snssai(EMBB_NO_SD, VISITED_PLMN, HOME_PLMN)) == EMBB
        assert run(resolver.get_home_snssai(Snssai(sst=1, sd="000000"), VISITED_PLMN, HOME_PLMN)) is None

    def test_validity_area(self, repository, resolver):
        run(repository.create_mapping(mapping(SERVING_EMBB, EMBB, validityArea=[VISITED_TAI])))
        elsewhere = Tai(plmnId=VISITED_PLMN, tac="000099")
        assert run(resolver.get_home_snssai(SERVING_EMBB, VISITED_PLMN, HOME_PLMN, VISITED_TAI)) == EMBB
        assert run(resolver.get_home_snssai(SERVING_EMBB, VISITED_PLMN, HOME_PLMN, elsewhere)) is None
        # no TAI given: the validity area is not checked
        assert run(resolver.get_home_snssai(SERVING_EMBB, VISITED_PLMN, HOME_PLMN)) == EMBB


@pytest.mark.components
class TestBatch:

    def test_unmapped_entries_are_omitted(self, repository, resolver):
        run(repository.create_mapping(mapping(SERVING_EMBB, EMBB)))
        run(repository.create_mapping(mapping(SERVING_URLLC, URLLC)))
        result = run(resolver.resolve_batch([SERVING_URLLC, MIOT, SERVING_EMBB], VISITED_PLMN, HOME_PLMN))
        assert [(m.servingSnssai, m.homeSnssai) for m in result] == [
            (SERVING_URLLC, URLLC),
            (SERVING_EMBB, EMBB),
        ]

    def test_empty_batch(self, resolver):
        assert run(resolver.resolve_batch([], VISITED_PLMN, HOME_PLMN)) == []


@pytest.mark.components
class TestCreateMapping:

    def test_generated_id(self, repository):
        stored = run(repository.create_mapping(mapping(SERVING_EMBB, EMBB)))
        assert stored.mappingId == "mapping-310260-00101-1000001"

    def test_generated_id_without_sd(self, repository):
        stored = run(repository.create_mapping(mapping(EMBB_NO_SD, EMBB)))
        assert stored.mappingId == "mapping-310260-00101-1"

    def test_duplicate_serving_key_rejected(self, repository):
        run(repository.create_mapping(mapping(SERVING_EMBB, EMBB)))
        with pytest.raises(DatabaseError, match="already exists"):
            run(repository.create_mapping(mapping(SERVING_EMBB, URLLC)))

    def test_same_serving_snssai_for_another_home_plmn(self, repository):
        run(repository.create_mapping(mapping(SERVING_EMBB, EMBB)))
        stored = run(repository.create_mapping(mapping(SERVING_EMBB, URLLC, homePlmnId=OTHER_PLMN)))
        assert stored.homePlmnId == OTHER_PLMN
