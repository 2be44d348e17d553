import zlib

import pytest

from hwpreader.core.errors import DecompressionError
from hwpreader.modules.decompress import decompress

from hwp_samples import deflate


def test_roundtrip_payload():
    data = "안녕하세요 HWP".encode("utf-16-le") * 50
    assert decompress(deflate(data)) == data


def test_empty_payload_stream():
    assert decompress(deflate(b"")) == b""


def test_zlib_wrapped_stream_is_rejected():
    # zlib 헤더가 붙은 스트림은 raw deflate가 아니다
    with pytest.raises(DecompressionError):
        decompress(zlib.compress(b"hello" * 100), entry="DocInfo")


def test_garbage():
    with pytest.raises(DecompressionError) as ei:
        decompress(b"\xff\xff\xff\xff\xff", entry="BodyText/Section0")
    assert ei.value.kind == "DecompressionFailure"
    assert ei.value.entry == "BodyText/Section0"


def test_truncated():
    raw = deflate(bytes(range(256)) * 40)
    with pytest.raises(DecompressionError):
        decompress(raw[: len(raw) // 2])


def test_empty_input():
    with pytest.raises(DecompressionError):
        decompress(b"")
