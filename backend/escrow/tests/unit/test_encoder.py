import msgpack
import pytest

from escrow.messaging.encoder import MAX_DOCUMENT_LEN, DecodeError, decode, encode


class TestEncoder:
    def test_bytes_stay_binary(self):
        document = {"data": b"\x00\xff", "name": "ledger"}
        assert decode(encode(document)) == document

    def test_rejects_non_map(self):
        with pytest.raises(DecodeError, match="expected a map"):
            decode(msgpack.packb([1, 2]))

    def test_rejects_truncated(self):
        with pytest.raises(DecodeError):
            decode(encode({"entries": [1, 2, 3]})[:-1])

    def test_rejects_oversize_document(self):
        with pytest.raises(DecodeError, match="too large"):
            decode(b"\x00" * (MAX_DOCUMENT_LEN + 1))

    def test_rejects_wide_maps(self):
        with pytest.raises(DecodeError):
            decode(msgpack.packb({str(i): i for i in range(65)}))
