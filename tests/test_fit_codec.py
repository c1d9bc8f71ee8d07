import sys
import tempfile
import unittest
from pathlib import Path

from fit_tool.fit_file import FitFile
from fit_tool.fit_file_builder import FitFileBuilder
from fit_tool.profile.messages.device_info_message import DeviceInfoMessage
from fit_tool.profile.messages.file_id_message import FileIdMessage
from fit_tool.profile.messages.lap_message import LapMessage
from fit_tool.profile.messages.record_message import RecordMessage
from fit_tool.profile.messages.session_message import SessionMessage
from fit_tool.profile.profile_type import FileType, Manufacturer, Sport

sys.path.insert(0, str(Path(__file__).parent.parent))

from analyzers.activity_corrector import fix_fit_file
from models.activity import SINT8_INVALID, UINT16_INVALID
from parsers.fit_codec import decode_activity, encode_activity, write_activity
from utils.errors import DecodeError

START_MS = 1_700_000_000_000
SAMPLES = [(200, 150, 90), (None, 155, 92), (210, None, None)]


def build_mywhoosh_file(path, file_type=FileType.ACTIVITY):
    """Write a small activity the way MyWhoosh does: no session averages, temperature on."""
    file_id = FileIdMessage()
    file_id.type = file_type
    file_id.manufacturer = Manufacturer.DEVELOPMENT.value
    file_id.product = 0
    file_id.serial_number = 12345
    file_id.time_created = START_MS

    device = DeviceInfoMessage()
    device.timestamp = START_MS
    device.device_index = 0
    device.manufacturer = Manufacturer.DEVELOPMENT.value
    device.product = 0
    device.serial_number = 12345

    records = []
    for i, (power, heart_rate, cadence) in enumerate(SAMPLES):
        record = RecordMessage()
        record.timestamp = START_MS + i * 1000
        if power is not None:
            record.power = power
        if heart_rate is not None:
            record.heart_rate = heart_rate
        if cadence is not None:
            record.cadence = cadence
        record.temperature = 25
        records.append(record)

    end_ms = START_MS + len(SAMPLES) * 1000
    lap = LapMessage()
    lap.timestamp = end_ms
    lap.start_time = START_MS

    session = SessionMessage()
    session.timestamp = end_ms
    session.start_time = START_MS
    session.sport = Sport.CYCLING

    builder = FitFileBuilder(auto_define=True)
    builder.add(file_id)
    builder.add(device)
    builder.add_all(records)
    builder.add(lap)
    builder.add(session)
    builder.build().to_file(str(path))
    return path


class TestFitCodec(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.source = build_mywhoosh_file(self.dir / 'MyNewActivity-3.8.5.fit')

    def tearDown(self):
        self.tmp.cleanup()

    def test_decode_maps_missing_values_to_sentinels(self):
        activity = decode_activity(self.source)

        self.assertEqual(len(activity.records), 3)
        self.assertEqual(activity.records[0].power, 200)
        self.assertEqual(activity.records[1].power, UINT16_INVALID)
        self.assertEqual(activity.records[0].temperature, 25)
        self.assertEqual(len(activity.sessions), 1)
        self.assertEqual(activity.sessions[0].avg_power, UINT16_INVALID)
        self.assertEqual(len(activity.laps), 1)
        self.assertEqual(len(activity.device_infos), 1)
        self.assertEqual(activity.file_id.serial_number, 12345)

    def test_fix_end_to_end(self):
        output = self.dir / 'fixed.fit'
        lines = []

        report = fix_fit_file(self.source, output, progress=lines.append)
        fixed = decode_activity(output)

        session = fixed.sessions[0]
        self.assertEqual(session.avg_power, 205)
        self.assertEqual(session.avg_heart_rate, 152)
        self.assertEqual(session.avg_cadence, 91)
        self.assertTrue(all(r.temperature == SINT8_INVALID for r in fixed.records))
        for identity in fixed.identities:
            self.assertEqual(identity.manufacturer, 1)
            self.assertEqual(identity.product, 3288)
            self.assertEqual(identity.serial_number, 3420897194)
        self.assertEqual(report.record_count, 3)
        self.assertTrue(lines)

    def test_cleared_temperature_is_written_as_invalid_value(self):
        output = self.dir / 'fixed.fit'

        fix_fit_file(self.source, output, progress=lambda line: None)

        temperatures = [record.message.temperature for record in FitFile.from_file(str(output)).records
                        if isinstance(record.message, RecordMessage)]
        self.assertEqual(len(temperatures), 3)
        for temperature in temperatures:
            self.assertIn(temperature, (None, SINT8_INVALID))

    def test_absent_averages_are_not_written_as_zero(self):
        activity = decode_activity(self.source)
        output = write_activity(activity, self.dir / 'copy.fit')

        sessions = [record.message for record in FitFile.from_file(str(output)).records
                    if isinstance(record.message, SessionMessage)]

        self.assertEqual(len(sessions), 1)
        self.assertIn(sessions[0].avg_power, (None, UINT16_INVALID))
        self.assertEqual(decode_activity(output).sessions[0].avg_power, UINT16_INVALID)

    def test_untouched_messages_survive(self):
        output = self.dir / 'fixed.fit'
        original = decode_activity(self.source)

        fix_fit_file(self.source, output, progress=lambda line: None)
        fixed = decode_activity(output)

        self.assertEqual([r.timestamp for r in fixed.records], [r.timestamp for r in original.records])
        self.assertEqual([r.power for r in fixed.records], [r.power for r in original.records])
        self.assertEqual([r.cadence for r in fixed.records], [r.cadence for r in original.records])
        self.assertEqual(fixed.laps[0].start_time, original.laps[0].start_time)
        self.assertEqual(fixed.sessions[0].start_time, original.sessions[0].start_time)
        self.assertEqual(len(fixed.messages), len(original.messages))

    def test_unchanged_activity_reencodes(self):
        activity = decode_activity(self.source)
        output = write_activity(activity, self.dir / 'copy.fit')

        copy = decode_activity(output)

        self.assertEqual([r.heart_rate for r in copy.records], [r.heart_rate for r in activity.records])
        self.assertTrue(encode_activity(copy))

    def test_non_activity_file_is_rejected(self):
        workout = build_mywhoosh_file(self.dir / 'workout.fit', file_type=FileType.WORKOUT)
        with self.assertRaises(DecodeError):
            decode_activity(workout)

    def test_garbage_is_rejected(self):
        garbage = self.dir / 'garbage.fit'
        garbage.write_bytes(b'garbage')
        with self.assertRaises(DecodeError):
            decode_activity(garbage)

    def test_missing_file_is_rejected(self):
        with self.assertRaises(DecodeError):
            decode_activity(self.dir / 'missing.fit')

    def test_failed_decode_writes_nothing(self):
        garbage = self.dir / 'garbage.fit'
        garbage.write_bytes(b'garbage')
        output = self.dir / 'out.fit'

        with self.assertRaises(DecodeError):
            fix_fit_file(garbage, output, progress=lambda line: None)
        self.assertFalse(output.exists())


if __name__ == '__main__':
    unittest.main()
