import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from analyzers.activity_inspector import format_inspection, identity_table, record_table, session_table
from models.activity import ActivityFile, ActivityRecord, DeviceIdentity, SessionSummary


class TestActivityInspector(unittest.TestCase):

    def setUp(self):
        self.activity = ActivityFile(
            file_id=DeviceIdentity(manufacturer=1, product=3288, serial_number=3420897194),
            records=[ActivityRecord(timestamp=i, power=200 + i) for i in range(10)],
            sessions=[SessionSummary(avg_power=204, avg_heart_rate=150, avg_cadence=90)],
            device_infos=[DeviceIdentity(manufacturer=1, product=3288, serial_number=3420897194,
                                         device_index=0)],
        )

    def test_identity_table_lists_file_id_first(self):
        table = identity_table(self.activity)
        self.assertEqual(list(table['source']), ['file_id', 'device_info[0]'])
        self.assertTrue((table['product'] == 3288).all())

    def test_session_and_record_tables(self):
        self.assertEqual(session_table(self.activity).loc[0, 'avg_power'], 204)
        self.assertEqual(len(record_table(self.activity)), 10)

    def test_format_limits_records(self):
        report = format_inspection(self.activity, max_records=2)
        self.assertIn('=== records (10, first 2) ===', report)
        self.assertIn('3420897194', report)
        self.assertNotIn('209', report)

    def test_empty_activity(self):
        empty = ActivityFile(file_id=DeviceIdentity(manufacturer=1))
        report = format_inspection(empty)
        self.assertIn('(none)', report)


if __name__ == '__main__':
    unittest.main()
