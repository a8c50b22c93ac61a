"""Tests for duplicate reconciliation"""

from unittest.mock import MagicMock

from riplanner.core.exceptions import DataCollectionError
from riplanner.core.models import CommitmentState, ServiceType, total_instances
from riplanner.pipeline.duplicates import DuplicateChecker, reconciliation_key

from conftest import FakeServiceClient, make_commitment, make_ec2_rec, make_rds_rec


class TestReconcile:
    """Test DuplicateChecker.reconcile"""

    def test_counter_shared_across_recommendations(self, fixed_clock):
        checker = DuplicateChecker(24, clock=fixed_clock)
        recs = [make_rds_rec(count=10, account="111"), make_rds_rec(count=5, account="222")]
        result = checker.reconcile(recs, [make_commitment(count=8, hours_ago=1)])
        assert [r.count for r in result] == [2, 5]

    def test_fully_covered_recommendation_dropped(self, fixed_clock):
        checker = DuplicateChecker(24, clock=fixed_clock)
        recs = [make_rds_rec(count=3), make_rds_rec(count=4)]
        result = checker.reconcile(recs, [make_commitment(count=5)])
        # first consumes 3, second gets the remaining 2 subtracted
        assert [r.count for r in result] == [2]

    def test_old_commitment_ignored(self, fixed_clock):
        checker = DuplicateChecker(24, clock=fixed_clock)
        recs = [make_rds_rec(count=10)]
        assert checker.reconcile(recs, [make_commitment(count=8, hours_ago=48)]) == recs

    def test_inactive_commitment_ignored(self, fixed_clock):
        checker = DuplicateChecker(24, clock=fixed_clock)
        recs = [make_rds_rec(count=10)]
        retired = make_commitment(count=8, state=CommitmentState.RETIRED)
        assert checker.reconcile(recs, [retired]) == recs

    def test_payment_pending_counts(self, fixed_clock):
        checker = DuplicateChecker(24, clock=fixed_clock)
        pending = make_commitment(count=4, state=CommitmentState.PAYMENT_PENDING)
        assert checker.reconcile([make_rds_rec(count=10)], [pending])[0].count == 6

    def test_key_includes_engine_and_region(self, fixed_clock):
        checker = DuplicateChecker(24, clock=fixed_clock)
        recs = [make_rds_rec(count=10, engine="postgres"), make_rds_rec(count=10, region="eu-west-1")]
        result = checker.reconcile(recs, [make_commitment(count=8, engine="mysql")])
        assert [r.count for r in result] == [10, 10]

    def test_engine_normalized_on_both_sides(self, fixed_clock):
        checker = DuplicateChecker(24, clock=fixed_clock)
        rec = make_rds_rec(count=10, engine="Aurora PostgreSQL")
        commitment = make_commitment(count=3, engine="aurora-postgresql")
        assert checker.reconcile([rec], [commitment])[0].count == 7

    def test_non_database_key_has_empty_engine(self, fixed_clock):
        checker = DuplicateChecker(24, clock=fixed_clock)
        commitment = make_commitment(count=2, resource_type="m5.large", engine="", service=ServiceType.EC2)
        assert checker.reconcile([make_ec2_rec(count=4)], [commitment])[0].count == 2
        assert reconciliation_key("m5.large", "us-east-1", "") == "m5.large|us-east-1|"

    def test_conservation(self, fixed_clock):
        checker = DuplicateChecker(24, clock=fixed_clock)
        recs = [make_rds_rec(count=c) for c in (4, 9, 2, 6)]
        commitments = [make_commitment(count=5), make_commitment(count=3, hours_ago=20),
                       make_commitment(count=50, hours_ago=30)]
        result = checker.reconcile(recs, commitments)
        removed = total_instances(recs) - total_instances(result)
        assert removed <= 8
        assert removed == 8

    def test_counter_is_per_call(self, fixed_clock):
        checker = DuplicateChecker(24, clock=fixed_clock)
        commitments = [make_commitment(count=8)]
        first = checker.reconcile([make_rds_rec(count=10)], commitments)
        second = checker.reconcile([make_rds_rec(count=10)], commitments)
        assert first[0].count == second[0].count == 2


class TestAdjust:
    """Test DuplicateChecker.adjust"""

    def test_fetches_from_source(self, fixed_clock):
        checker = DuplicateChecker(24, clock=fixed_clock)
        client = FakeServiceClient(commitments=[make_commitment(count=8)])
        assert checker.adjust([make_rds_rec(count=10)], client)[0].count == 2

    def test_fail_open(self, fixed_clock):
        checker = DuplicateChecker(24, clock=fixed_clock)
        recs = [make_rds_rec(count=10), make_rds_rec(count=5)]
        client = FakeServiceClient(error=DataCollectionError("access denied"))
        assert checker.adjust(recs, client) == recs

    def test_fail_open_on_unexpected_error(self, fixed_clock):
        checker = DuplicateChecker(24, clock=fixed_clock)
        source = MagicMock()
        source.get_existing_commitments.side_effect = RuntimeError("connection reset")
        recs = [make_rds_rec(count=10)]
        assert checker.adjust(recs, source) == recs
