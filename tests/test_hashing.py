"""
Hashing and store path tests.

Vectors:
- SHA-256("hello\\n") = 5891b5b5...f6be03
- SHA-256("") in Nix base32 = 0mdqa9w1...1c9c73
"""

import unittest

from agelock import (
    ConfigurationError,
    Digest,
    derive_name,
    make_fixed_output_path,
    parse_hash,
    sha256_digest,
)
from agelock.hashing import nix_base32_decode, nix_base32_encode
from agelock.store_path import compress_hash, validate_store_name

HELLO_HEX = "5891b5b522d5df086d0ff0b110fbd9d21bb4fc7163af34d08286a2e846f6be03"
HELLO_SRI = "sha256-WJG1tSLV3whtD/CxEPvZ0hu0/HFjrzTQgoai6Eb2vgM="
HELLO_NIX32 = "00xyyr3fi8l6hb839bv3f7yb86yjv7xi1cgh1xnhipym4asvb4aq"
EMPTY_HEX = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
EMPTY_NIX32 = "0mdqa9w1p6cmli6976v4wi0sw9r4p5prkj7lzfd1877wk11c9c73"


class TestDigest(unittest.TestCase):

    def test_sha256_of_hello(self):
        d = sha256_digest(b"hello\n")
        self.assertEqual(d.algorithm, "sha256")
        self.assertEqual(d.hex(), HELLO_HEX)
        self.assertEqual(d.to_sri(), HELLO_SRI)
        self.assertEqual(str(d), HELLO_SRI)

    def test_str_input_is_utf8(self):
        self.assertEqual(sha256_digest("hello\n"), sha256_digest(b"hello\n"))

    def test_base16_form_is_prefixed(self):
        self.assertEqual(sha256_digest(b"").to_base16(), f"sha256:{EMPTY_HEX}")


class TestNixBase32(unittest.TestCase):

    def test_known_empty_digest(self):
        self.assertEqual(nix_base32_encode(bytes.fromhex(EMPTY_HEX)), EMPTY_NIX32)

    def test_known_hello_digest(self):
        self.assertEqual(sha256_digest(b"hello\n").base32(), HELLO_NIX32)

    def test_decode_inverts_encode(self):
        for hexdigest in (EMPTY_HEX, HELLO_HEX):
            raw = bytes.fromhex(hexdigest)
            self.assertEqual(nix_base32_decode(nix_base32_encode(raw), 32), raw)

    def test_decode_rejects_bad_characters(self):
        bad = "e" * 52  # 'e' is not in the alphabet
        with self.assertRaises(ValueError):
            nix_base32_decode(bad, 32)

    def test_decode_rejects_wrong_length(self):
        with self.assertRaises(ValueError):
            nix_base32_decode(EMPTY_NIX32[:-1], 32)


class TestParseHash(unittest.TestCase):

    def setUp(self):
        self.expected = Digest("sha256", bytes.fromhex(HELLO_HEX))

    def test_sri(self):
        self.assertEqual(parse_hash(HELLO_SRI), self.expected)

    def test_prefixed_hex(self):
        self.assertEqual(parse_hash(f"sha256:{HELLO_HEX}"), self.expected)

    def test_prefixed_nix32(self):
        self.assertEqual(parse_hash(f"sha256:{HELLO_NIX32}"), self.expected)

    def test_bare_forms_default_to_sha256(self):
        self.assertEqual(parse_hash(HELLO_HEX), self.expected)
        self.assertEqual(parse_hash(HELLO_NIX32), self.expected)
        self.assertEqual(parse_hash(HELLO_SRI[len("sha256-"):]), self.expected)

    def test_empty_means_no_hash(self):
        self.assertIsNone(parse_hash(None))
        self.assertIsNone(parse_hash(""))

    def test_whitespace_is_not_empty(self):
        for text in (" ", "   "):
            with self.assertRaises(ConfigurationError):
                parse_hash(text)

    def test_other_algorithms_parse_but_keep_their_name(self):
        sha1 = "sha1-" + "A" * 27 + "="
        d = parse_hash(sha1)
        self.assertEqual(d.algorithm, "sha1")
        self.assertEqual(len(d.digest), 20)

    def test_unknown_algorithm(self):
        with self.assertRaises(ConfigurationError):
            parse_hash("blake9-AAAA")

    def test_wrong_length(self):
        with self.assertRaises(ConfigurationError):
            parse_hash("sha256-AAAA")

    def test_garbage(self):
        with self.assertRaises(ConfigurationError):
            parse_hash("not a hash")


class TestStorePath(unittest.TestCase):
    """Store paths are a pure function of (store_dir, name, hash)."""

    def setUp(self):
        self.digest = sha256_digest(b"hello\n")

    def test_known_vector(self):
        self.assertEqual(
            make_fixed_output_path("/nix/store", "hello.txt", self.digest),
            "/nix/store/gy454w1cxaq731grqwylhzf4pp9r5izh-hello.txt",
        )
        self.assertEqual(
            make_fixed_output_path("/nix/store", "source", self.digest),
            "/nix/store/fw64rwl308x0a7bc2ypdghdkivq8nv94-source",
        )

    def test_deterministic(self):
        paths = {make_fixed_output_path("/nix/store", "hello.txt", sha256_digest(b"hello\n")) for _ in range(5)}
        self.assertEqual(len(paths), 1)

    def test_depends_on_name_hash_and_store_dir(self):
        base = make_fixed_output_path("/nix/store", "a", self.digest)
        self.assertNotEqual(base, make_fixed_output_path("/nix/store", "b", self.digest))
        self.assertNotEqual(base, make_fixed_output_path("/nix/store", "a", sha256_digest(b"x")))
        self.assertNotEqual(base.split("/")[-1], make_fixed_output_path("/tmp/store", "a", self.digest).split("/")[-1])

    def test_trailing_slash_in_store_dir_is_ignored(self):
        self.assertEqual(
            make_fixed_output_path("/nix/store/", "a", self.digest),
            make_fixed_output_path("/nix/store", "a", self.digest),
        )

    def test_path_shape(self):
        path = make_fixed_output_path("/nix/store", "hello.txt", self.digest)
        base = path.rsplit("/", 1)[1]
        hash_part, name = base.split("-", 1)
        self.assertEqual(len(hash_part), 32)
        self.assertEqual(name, "hello.txt")

    def test_requires_sha256(self):
        with self.assertRaises(ConfigurationError):
            make_fixed_output_path("/nix/store", "a", Digest("sha1", b"\0" * 20))

    def test_compress_hash_folds_by_xor(self):
        self.assertEqual(compress_hash(bytes(range(32)), 20)[:12],
                         bytes(a ^ b for a, b in zip(range(12), range(20, 32))))
        self.assertEqual(compress_hash(bytes(range(32)), 20)[12:], bytes(range(12, 20)))


class TestDeriveName(unittest.TestCase):

    def test_strips_age_suffix(self):
        self.assertEqual(derive_name("/secrets/token.txt.age"), "token.txt")

    def test_keeps_other_names(self):
        self.assertEqual(derive_name("/secrets/token.txt"), "token.txt")

    def test_only_final_suffix_is_stripped(self):
        self.assertEqual(derive_name("x.age.age"), "x.age")

    def test_no_base_name_falls_back_to_source(self):
        self.assertEqual(derive_name("/"), "source")

    def test_leading_period_is_allowed(self):
        for name in (".env", "..env", ".a-b"):
            self.assertEqual(validate_store_name(name), name)
        self.assertEqual(derive_name("/srv/.env.age"), ".env")

    def test_name_validation(self):
        self.assertEqual(validate_store_name("ok-name_1.txt"), "ok-name_1.txt")
        for bad in ("", ".", "..", ".-x", "..-y", "has space", "sl/ash", "x" * 212):
            with self.assertRaises(ConfigurationError):
                validate_store_name(bad)


if __name__ == "__main__":
    unittest.main()
