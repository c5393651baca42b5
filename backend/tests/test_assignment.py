"""
Assignment resolver tests.

Verifies:
- only active delivery workers are returned
- area matching is case-insensitive substring by default, exact on request
- workers carry availability and vehicle metadata with defaults
"""

import pytest

from supplyline.services import assignment_service


@pytest.fixture
def roster(make_account):
    return {
        "dhanmondi": make_account(
            "delivery_worker", name="A Dhanmondi", area="Dhanmondi",
            assigned_areas=["Dhanmondi", "Mohammadpur"], availability="available",
            vehicle_type="bicycle", vehicle_number="BC-1",
        ),
        "gulshan": make_account("delivery_worker", name="B Gulshan", area="Gulshan 2"),
        "suspended": make_account("delivery_worker", name="C Suspended", area="Dhanmondi", status="suspended"),
        "shopkeeper": make_account("shopkeeper", name="D Shop", area="Dhanmondi"),
    }


class TestFindEligibleWorkers:

    def test_only_active_workers_in_area(self, db_session, roster):
        workers = assignment_service.find_eligible_workers("dhanmondi")

        assert [w["id"] for w in workers] == [roster["dhanmondi"].id]

    def test_substring_match_on_assigned_areas(self, db_session, roster):
        workers = assignment_service.find_eligible_workers("MOHAMMAD")

        assert [w["id"] for w in workers] == [roster["dhanmondi"].id]

    def test_longer_query_does_not_match_shorter_area(self, db_session, roster):
        assert assignment_service.find_eligible_workers("Dhanmondi North") == []

    def test_exact_match(self, db_session, roster):
        assert assignment_service.find_eligible_workers("Gulshan", require_exact_area=True) == []
        exact = assignment_service.find_eligible_workers("gulshan 2", require_exact_area=True)
        assert [w["id"] for w in exact] == [roster["gulshan"].id]

    def test_all_returns_every_active_worker(self, db_session, roster):
        workers = assignment_service.find_eligible_workers("all")

        assert {w["id"] for w in workers} == {roster["dhanmondi"].id, roster["gulshan"].id}

    def test_metadata_and_defaults(self, db_session, roster):
        by_id = {w["id"]: w for w in assignment_service.find_eligible_workers(None)}

        rider = by_id[roster["dhanmondi"].id]
        assert rider["availability"] == "available"
        assert rider["vehicle_type"] == "bicycle"
        assert rider["assigned_areas"] == ["Dhanmondi", "Mohammadpur"]

        bare = by_id[roster["gulshan"].id]
        assert bare["availability"] == "offline"
        assert bare["vehicle_type"] == "N/A"
        assert bare["vehicle_number"] == "N/A"
        assert bare["assigned_areas"] == ["Gulshan 2"]

    def test_is_read_only(self, db_session, roster):
        assignment_service.find_eligible_workers("Dhanmondi")

        assert not db_session.dirty
        assert not db_session.new
