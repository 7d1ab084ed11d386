"""
OnuStatusMap - Status Calculator Tests
"""

import unittest

from onu_map.calculators.status_calculator import StatusCalculator
from onu_map.models.onu import OnuRecord, OnuStatus


class TestStatusCalculator(unittest.TestCase):
    """Test cases for StatusCalculator.compute_statistics."""

    def setUp(self):
        self.records = [
            OnuRecord("A1", olt_id="1", olt_name="OLT-A", zone_name="North", odb_name="B1",
                      latitude=1.0, longitude=2.0, status=OnuStatus.ONLINE),
            OnuRecord("A2", olt_id="1", olt_name="OLT-A", zone_name="North", odb_name="B1",
                      latitude=1.2, longitude=2.2, status=OnuStatus.LOS),
            OnuRecord("A3", olt_id="2", zone_name="South", status=OnuStatus.POWER_FAIL),
            OnuRecord("A4", status=OnuStatus.OFFLINE)
        ]

    def test_status_counts(self):
        stats = StatusCalculator.compute_statistics(self.records).to_dict()

        self.assertEqual(stats["total"], 4)
        self.assertEqual(stats["online"], 1)
        self.assertEqual(stats["los"], 1)
        self.assertEqual(stats["power_fail"], 1)
        self.assertEqual(stats["offline"], 1)

    def test_location_counts(self):
        stats = StatusCalculator.compute_statistics(self.records)

        self.assertEqual(stats.with_location, 2)
        self.assertEqual(stats.without_location, 2)

    def test_olt_breakdown_falls_back_to_id_then_unknown(self):
        by_olt = StatusCalculator.compute_statistics(self.records).to_dict()["by_olt"]

        self.assertEqual(by_olt["OLT-A"], {"total": 2, "online": 1, "offline": 1})
        self.assertEqual(by_olt["2"], {"total": 1, "online": 0, "offline": 1})
        self.assertEqual(by_olt["Unknown"], {"total": 1, "online": 0, "offline": 1})

    def test_zone_and_odb_breakdown(self):
        stats = StatusCalculator.compute_statistics(self.records).to_dict()

        self.assertEqual(stats["by_zone"]["North"]["total"], 2)
        self.assertEqual(stats["by_odb"]["B1"]["online"], 1)
        self.assertEqual(stats["by_odb"]["Unknown"]["total"], 2)

    def test_empty_list(self):
        stats = StatusCalculator.compute_statistics([]).to_dict()

        self.assertEqual(stats["total"], 0)
        self.assertEqual(stats["by_olt"], {})


if __name__ == "__main__":
    unittest.main()
