import base64
import json
import unittest
from eventproof.codec import (
    address_bytes,
    bcs_string,
    build_compact_payload,
    build_legacy_payload,
    keccak256,
    normalize_address,
    parse_pass_payload,
    pass_commitment,
    u64_le,
)
from eventproof.errors import AbortCode, ProtocolError

EVENT_ID = '0x' + ('abc' * 22)[:64]
WALLET = '0x' + ('def' * 22)[:64]
GOLDEN = 'efcb2334ffcb39d48f1e2ad805082f2f3dc46f167e18c71e43093aa6908b3eef'


class TestKeccak(unittest.TestCase):
    def test_known_digests(self):
        self.assertEqual(
            keccak256(b'').hex(),
            'c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470',
        )
        self.assertEqual(
            keccak256(b'abc').hex(),
            '4e03657aea45a94fc7d47ba826c8d667c0d1e6e33a64a036ec44f58fa12d6c45',
        )


class TestEncoding(unittest.TestCase):
    def test_u64_is_little_endian(self):
        self.assertEqual(u64_le(42), bytes([42, 0, 0, 0, 0, 0, 0, 0]))
        self.assertEqual(u64_le(2**64 - 1), b'\xff' * 8)

    def test_u64_rejects_out_of_range(self):
        for bad in (-1, 2**64, True, '42', 4.2):
            with self.assertRaises(ProtocolError) as ctx:
                u64_le(bad)
            self.assertEqual(ctx.exception.code, AbortCode.INVALID_PAYLOAD)

    def test_short_address_is_left_padded(self):
        self.assertEqual(address_bytes('0xabc'), bytes(30) + b'\x0a\xbc')
        self.assertEqual(address_bytes('0xabc'), address_bytes('0x' + 'abc'.rjust(64, '0')))

    def test_address_rejects_garbage(self):
        for bad in ('0xzz', '', '0x' + 'a' * 65, None):
            with self.assertRaises(ProtocolError):
                address_bytes(bad)

    def test_normalize_lowercases_and_pads(self):
        self.assertEqual(normalize_address('0xABC'), '0x' + 'abc'.rjust(64, '0'))

    def test_bcs_string_length_prefix(self):
        self.assertEqual(bcs_string('hi'), b'\x02hi')
        self.assertEqual(bcs_string('a' * 200)[:2], b'\xc8\x01')


class TestPassCommitment(unittest.TestCase):
    def test_golden_vector(self):
        self.assertEqual(pass_commitment(42, EVENT_ID, WALLET).hex(), GOLDEN)

    def test_short_ids_hash_like_their_padded_form(self):
        digest = pass_commitment(42, '0xabc', '0xdef')
        self.assertEqual(digest.hex(), 'b7494635a497ab9ed7cba523eb58c9ae80a9f48803cdc6bd7e87b3861c4b0f65')
        self.assertEqual(digest, pass_commitment(42, normalize_address('0xabc'), normalize_address('0xdef')))

    def test_every_field_is_bound(self):
        self.assertEqual(
            pass_commitment(43, EVENT_ID, WALLET).hex(),
            'a2e65716d2db649dbfadea22f2df71b80d45f5cb9cf703780e8e3fd6add91267',
        )
        self.assertNotEqual(pass_commitment(42, WALLET, EVENT_ID).hex(), GOLDEN)


class TestPayloads(unittest.TestCase):
    def test_compact_payload(self):
        payload = build_compact_payload(42, EVENT_ID, WALLET, 1000)
        self.assertEqual(payload['p'], 42)
        self.assertEqual(payload['ref'], GOLDEN[:8])

        parsed = parse_pass_payload(json.dumps(payload))
        self.assertTrue(parsed.is_compact)
        self.assertEqual(parsed.pass_id, 42)
        self.assertEqual(parsed.event_id, EVENT_ID)
        self.assertEqual(parsed.wallet, WALLET)
        self.assertEqual(parsed.client_timestamp, 1000)

    def test_legacy_payload_carries_base64_hash(self):
        commitment = bytes.fromhex(GOLDEN)
        payload = build_legacy_payload(EVENT_ID, WALLET, commitment, 500, 1000)
        self.assertEqual(base64.b64decode(payload['pass_hash']), commitment)

        parsed = parse_pass_payload(payload)
        self.assertFalse(parsed.is_compact)
        self.assertEqual(parsed.presented_hash, commitment)

    def test_legacy_accepts_hex_and_old_key(self):
        parsed = parse_pass_payload({
            'event_id': EVENT_ID,
            'user_address': WALLET,
            'registration_hash': '0x' + GOLDEN,
        })
        self.assertEqual(parsed.presented_hash.hex(), GOLDEN)

    def test_malformed_payloads(self):
        bad_inputs = [
            'not json',
            '[1, 2]',
            {'foo': 'bar'},
            {'e': EVENT_ID, 'p': -1, 'u': WALLET},
            {'event_id': EVENT_ID, 'user_address': WALLET, 'pass_hash': base64.b64encode(b'short').decode()},
            {'event_id': EVENT_ID, 'user_address': WALLET},
        ]
        for data in bad_inputs:
            with self.assertRaises(ProtocolError) as ctx:
                parse_pass_payload(data)
            self.assertEqual(ctx.exception.code, AbortCode.INVALID_PAYLOAD)


if __name__ == '__main__':
    unittest.main()
