"""Request schema tests."""

import unittest
from pathlib import Path

from pydantic import ValidationError

from agelock import AgeRequest, ConfigurationError, EncryptedReference, parse_request, sha256_digest

HELLO_SRI = "sha256-WJG1tSLV3whtD/CxEPvZ0hu0/HFjrzTQgoai6Eb2vgM="


class TestParseRequest(unittest.TestCase):

    def test_file_only(self):
        ref = parse_request({"file": "secrets/a.age"}, "readAge")
        self.assertEqual(ref, EncryptedReference(Path("secrets/a.age")))
        self.assertIsNone(ref.expected_hash)

    def test_file_and_hash(self):
        ref = parse_request({"file": Path("/s/a.age"), "hash": HELLO_SRI}, "readAge")
        self.assertEqual(ref.file, Path("/s/a.age"))
        self.assertEqual(ref.expected_hash, sha256_digest(b"hello\n"))

    def test_empty_hash_means_none(self):
        self.assertIsNone(parse_request({"file": "a.age", "hash": ""}, "readAge").expected_hash)

    def test_unsupported_attribute(self):
        with self.assertRaises(ConfigurationError) as ctx:
            parse_request({"file": "a.age", "name": "x"}, "importAge")
        self.assertEqual(str(ctx.exception), "unsupported attribute 'name' in 'importAge'")

    def test_file_required(self):
        with self.assertRaises(ConfigurationError) as ctx:
            parse_request({"hash": HELLO_SRI}, "readAge")
        self.assertEqual(str(ctx.exception), "'file' attribute is required in 'readAge'")

    def test_wrong_hash_type(self):
        with self.assertRaises(ConfigurationError) as ctx:
            parse_request({"file": "a.age", "hash": 42}, "readAge")
        self.assertTrue(str(ctx.exception).startswith("invalid 'hash' attribute passed to 'readAge'"))

    def test_malformed_hash(self):
        with self.assertRaises(ConfigurationError):
            parse_request({"file": "a.age", "hash": "sha256-nope"}, "readAge")

    def test_whitespace_hash_is_malformed(self):
        with self.assertRaises(ConfigurationError):
            parse_request({"file": "a.age", "hash": " "}, "readAge")


class TestAgeRequest(unittest.TestCase):

    def test_frozen(self):
        req = AgeRequest(file="a.age")
        with self.assertRaises(ValidationError):
            req.file = Path("b.age")

    def test_extra_forbidden(self):
        with self.assertRaises(ValidationError):
            AgeRequest(file="a.age", recursive=True)


if __name__ == "__main__":
    unittest.main()
