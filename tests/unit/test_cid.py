import base64
import hashlib

import pytest

from medchain.storage.cid import cid_to_bytes


def _cidv1(codec: int, payload: bytes) -> tuple[str, bytes]:
    raw = bytes([0x01, codec, 0x12, 0x20]) + hashlib.sha256(payload).digest()
    text = "b" + base64.b32encode(raw).decode("ascii").lower().rstrip("=")
    return text, raw


class TestCidToBytes:
    def test_raw_leaf_cid(self) -> None:
        cid, expected = _cidv1(0x55, b"envelope")

        assert cid.startswith("bafkrei")
        assert cid_to_bytes(cid) == expected

    def test_dag_pb_cid(self) -> None:
        cid, expected = _cidv1(0x70, b"envelope")

        assert cid.startswith("bafybei")
        assert cid_to_bytes(cid) == expected

    def test_binary_form_length(self) -> None:
        cid, _ = _cidv1(0x55, b"x")
        assert len(cid_to_bytes(cid)) == 36

    def test_rejects_cidv0(self) -> None:
        with pytest.raises(ValueError, match="base32 CIDv1"):
            cid_to_bytes("QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG")

    def test_rejects_invalid_base32(self) -> None:
        with pytest.raises(ValueError, match="Invalid base32"):
            cid_to_bytes("b1189")

    def test_rejects_wrong_version(self) -> None:
        raw = bytes([0x00, 0x55, 0x12, 0x20]) + b"\x00" * 32
        text = "b" + base64.b32encode(raw).decode("ascii").lower().rstrip("=")
        with pytest.raises(ValueError, match="not version 1"):
            cid_to_bytes(text)
