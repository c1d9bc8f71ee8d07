import logging
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from analyzers.activity_corrector import ActivityCorrector, mean_truncated, needs_fix
from models.activity import (
    ActivityFile,
    ActivityRecord,
    DeviceIdentity,
    SessionSummary,
    SINT8_INVALID,
    UINT8_INVALID,
    UINT16_INVALID,
)


def mywhoosh_activity(records, session=None, devices=2):
    """Activity shaped like a MyWhoosh export: no session averages, unknown device."""
    return ActivityFile(
        file_id=DeviceIdentity(manufacturer=331, product=0, serial_number=12345),
        records=records,
        sessions=[session or SessionSummary(avg_power=UINT16_INVALID, avg_heart_rate=0,
                                            avg_cadence=UINT8_INVALID)],
        device_infos=[DeviceIdentity(manufacturer=331, product=0, serial_number=12345,
                                     device_index=i) for i in range(devices)],
    )


def snapshot(activity):
    session = activity.sessions[0]
    return (
        (session.avg_power, session.avg_heart_rate, session.avg_cadence),
        [r.temperature for r in activity.records],
        [(i.manufacturer, i.product, i.serial_number) for i in activity.identities],
    )


class TestActivityCorrector(unittest.TestCase):

    def setUp(self):
        self.corrector = ActivityCorrector()
        self.lines = []

    def correct(self, activity):
        return self.corrector.correct(activity, progress=self.lines.append)

    def test_three_record_scenario(self):
        records = [
            ActivityRecord(power=200, heart_rate=150, cadence=90, temperature=25),
            ActivityRecord(power=UINT16_INVALID, heart_rate=155, cadence=92, temperature=25),
            ActivityRecord(power=210, heart_rate=UINT8_INVALID, cadence=UINT8_INVALID, temperature=26),
        ]
        activity = mywhoosh_activity(records)

        report = self.correct(activity)

        session = activity.sessions[0]
        self.assertEqual(session.avg_power, 205)
        self.assertEqual(session.avg_heart_rate, 152)
        self.assertEqual(session.avg_cadence, 91)
        self.assertTrue(all(r.temperature == SINT8_INVALID for r in activity.records))
        for identity in activity.identities:
            self.assertEqual(identity.manufacturer, 1)
            self.assertEqual(identity.product, 3288)
            self.assertEqual(identity.serial_number, 3420897194)

        self.assertEqual(report.record_count, 3)
        self.assertEqual(report.power_samples, 2)
        self.assertEqual(report.heart_rate_samples, 2)
        self.assertEqual(report.cadence_samples, 2)
        self.assertEqual(report.devices_spoofed, 2)
        self.assertEqual(report.derived[0], {'avg_power': 205, 'avg_heart_rate': 152, 'avg_cadence': 91})

    def test_ten_identical_records(self):
        records = [ActivityRecord(power=200, heart_rate=150, cadence=90, temperature=25) for _ in range(10)]
        activity = mywhoosh_activity(records)

        self.correct(activity)

        session = activity.sessions[0]
        self.assertEqual((session.avg_power, session.avg_heart_rate, session.avg_cadence), (200, 150, 90))
        self.assertEqual({r.temperature for r in activity.records}, {SINT8_INVALID})

    def test_existing_averages_are_kept(self):
        records = [ActivityRecord(power=300, heart_rate=170, cadence=100)]
        session = SessionSummary(avg_power=180, avg_heart_rate=140, avg_cadence=85)
        activity = mywhoosh_activity(records, session=session)

        report = self.correct(activity)

        self.assertEqual((session.avg_power, session.avg_heart_rate, session.avg_cadence), (180, 140, 85))
        self.assertEqual(report.derived, {})

    def test_no_samples_leaves_sentinel(self):
        records = [ActivityRecord(power=UINT16_INVALID, heart_rate=UINT8_INVALID, cadence=UINT8_INVALID)]
        activity = mywhoosh_activity(records)

        self.correct(activity)

        session = activity.sessions[0]
        self.assertEqual(session.avg_power, UINT16_INVALID)
        self.assertEqual(session.avg_heart_rate, 0)
        self.assertEqual(session.avg_cadence, UINT8_INVALID)

    def test_zero_samples_count(self):
        records = [ActivityRecord(power=0, cadence=0), ActivityRecord(power=100, cadence=80)]
        activity = mywhoosh_activity(records)

        self.correct(activity)

        self.assertEqual(activity.sessions[0].avg_power, 50)
        self.assertEqual(activity.sessions[0].avg_cadence, 40)

    def test_second_pass_changes_nothing(self):
        records = [ActivityRecord(power=201, heart_rate=150, cadence=90, temperature=20),
                   ActivityRecord(power=202, heart_rate=151, cadence=91, temperature=20)]
        activity = mywhoosh_activity(records)
        self.correct(activity)
        first = snapshot(activity)

        report = self.correct(activity)

        self.assertEqual(report.derived, {})
        self.assertEqual(snapshot(activity), first)

    def test_large_power_values_do_not_overflow(self):
        records = [ActivityRecord(power=65000) for _ in range(1000)]
        activity = mywhoosh_activity(records)

        self.correct(activity)

        self.assertEqual(activity.sessions[0].avg_power, 65000)

    def test_no_device_entries(self):
        activity = mywhoosh_activity([ActivityRecord(power=100)], devices=0)

        report = self.correct(activity)

        self.assertEqual(report.devices_spoofed, 0)
        self.assertEqual(activity.file_id.product, 3288)

    def test_progress_lines(self):
        activity = mywhoosh_activity([ActivityRecord(power=200, heart_rate=150, cadence=90)])

        self.correct(activity)

        self.assertEqual(self.lines[0], 'Records: 1 | Power: 1 | HR: 1 | Cadence: 1 samples')
        self.assertIn('  -> avg power:      200 W', self.lines)
        self.assertTrue(any('Fenix 6S' in line for line in self.lines))

    def test_progress_defaults_to_logger(self):
        activity = mywhoosh_activity([ActivityRecord(power=200)])

        with self.assertLogs('analyzers.activity_corrector', level=logging.INFO) as captured:
            self.corrector.correct(activity)

        self.assertTrue(any('avg power' in line for line in captured.output))


class TestHelpers(unittest.TestCase):

    def test_needs_fix(self):
        self.assertTrue(needs_fix(None, UINT8_INVALID))
        self.assertTrue(needs_fix(UINT8_INVALID, UINT8_INVALID))
        self.assertTrue(needs_fix(0, UINT8_INVALID))
        self.assertFalse(needs_fix(1, UINT8_INVALID))

    def test_mean_truncates(self):
        self.assertEqual(mean_truncated([1, 2]), 1)
        self.assertEqual(mean_truncated([150, 155]), 152)


if __name__ == '__main__':
    unittest.main()
