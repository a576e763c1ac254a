import unittest

from transference.errors import DeserializationError
from transference.record import RECORD_SIZE, CounterRecord, decode, encode


class RecordTests(unittest.TestCase):
    def test_record_size_is_four_bytes(self) -> None:
        self.assertEqual(RECORD_SIZE, 4)
        self.assertEqual(encode(CounterRecord()), b"\x00\x00\x00\x00")

    def test_decode_little_endian(self) -> None:
        self.assertEqual(decode(b"\x01\x00\x00\x00"), CounterRecord(counter=1))
        self.assertEqual(decode(b"\x00\x01\x00\x00").counter, 256)
        self.assertEqual(decode(b"\xff\xff\xff\xff").counter, 2**32 - 1)

    def test_decode_rejects_empty_buffer(self) -> None:
        with self.assertRaises(DeserializationError):
            decode(b"")

    def test_decode_rejects_wrong_length(self) -> None:
        with self.assertRaisesRegex(DeserializationError, "got 3"):
            decode(b"\x01\x00\x00")
        with self.assertRaisesRegex(DeserializationError, "got 5"):
            decode(b"\x01\x00\x00\x00\x00")

    def test_encode_rejects_out_of_range(self) -> None:
        with self.assertRaises(ValueError):
            encode(CounterRecord(counter=-1))
        with self.assertRaises(ValueError):
            encode(CounterRecord(counter=2**32))

    def test_encode_decode_max_value(self) -> None:
        record = CounterRecord(counter=0x01020304)
        self.assertEqual(encode(record), b"\x04\x03\x02\x01")
        self.assertEqual(decode(encode(record)), record)


if __name__ == "__main__":
    unittest.main()
