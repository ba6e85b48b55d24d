"""Unit tests for ledger/costs.py."""

import pytest


class TestCalculateCost:
    """Tests for calculate_cost and UsageShape."""

    def test_minimum_cost(self):
        """An empty usage shape is still billed the minimum."""
        from vitrine.ledger.costs import MIN_COST, UsageShape, calculate_cost

        assert calculate_cost(UsageShape()) == MIN_COST

    def test_images_and_chars(self):
        """Each unit is priced at its own rate."""
        from vitrine.ledger.costs import UsageShape, calculate_cost

        shape = UsageShape(input_chars=1_000_000, output_chars=1_000_000, input_images=2, output_images=1)

        assert calculate_cost(shape) == pytest.approx(0.35 + 0.70 + 2 * 0.000125 + 0.020)

    def test_describe(self):
        """The default details text lists only the non-zero counters."""
        from vitrine.ledger.costs import UsageShape

        assert UsageShape(input_images=2, output_images=1, input_chars=40).describe() == "2 img in, 1 img out, 40 chars"
        assert UsageShape(output_chars=12).describe() == "12 chars out"


class TestCostRecorder:
    """Tests for CostRecorder.record."""

    def test_writes_row(self, db, admin):
        """A row is written with the recorder's user and project."""
        from vitrine.infra.db.crud import list_cost_logs
        from vitrine.ledger.costs import CostRecorder, UsageShape

        CostRecorder(db, admin.uid, "pasta-1").record(
            image_name="CAM-01", operation="model", shape=UsageShape(input_images=1, output_images=1)
        )

        rows = list_cost_logs(db, user_id=admin.uid)
        assert len(rows) == 1
        assert rows[0].project_id == "pasta-1"
        assert rows[0].operation == "model"
        assert rows[0].details == "1 img in, 1 img out"

    def test_unknown_operation(self, db, admin):
        """Only the known operation kinds can be billed."""
        from vitrine.ledger.costs import CostRecorder, UsageShape

        with pytest.raises(ValueError):
            CostRecorder(db, admin.uid).record(image_name="x", operation="upscale", shape=UsageShape())

    def test_details_are_truncated(self, db, admin):
        """Details never exceed 150 characters."""
        from vitrine.infra.db.crud import list_cost_logs
        from vitrine.ledger.costs import CostRecorder, UsageShape

        CostRecorder(db, admin.uid).record(
            image_name="x", operation="describe", shape=UsageShape(), details="d" * 400
        )

        assert len(list_cost_logs(db)[0].details) == 150


class TestSummarizeCosts:
    """Tests for summarize_costs."""

    def test_groups_by_image_name(self, db, admin, member):
        """Totals are per image name and only for the requested user."""
        from vitrine.ledger.costs import CostRecorder, UsageShape, calculate_cost, summarize_costs

        shape = UsageShape(input_images=1, output_images=1)
        rec = CostRecorder(db, admin.uid)
        rec.record(image_name="CAM-01", operation="enhance", shape=shape)
        rec.record(image_name="CAM-01", operation="model", shape=shape)
        rec.record(image_name="SAIA", operation="model", shape=shape)
        CostRecorder(db, member.uid).record(image_name="CAM-01", operation="model", shape=shape)

        summary = {g["imageName"]: g for g in summarize_costs(db, user_id=admin.uid)}

        assert set(summary) == {"CAM-01", "SAIA"}
        assert len(summary["CAM-01"]["logs"]) == 2
        assert summary["CAM-01"]["totalCost"] == pytest.approx(2 * calculate_cost(shape))

    def test_project_filter(self, db, admin):
        """project_id narrows the summary to one folder."""
        from vitrine.ledger.costs import CostRecorder, UsageShape, summarize_costs

        CostRecorder(db, admin.uid, "a").record(image_name="x", operation="model", shape=UsageShape())
        CostRecorder(db, admin.uid, "b").record(image_name="y", operation="model", shape=UsageShape())

        summary = summarize_costs(db, user_id=admin.uid, project_id="b")

        assert [g["imageName"] for g in summary] == ["y"]
