import pytest

from hwpreader.core.errors import ContainerError
from hwpreader.modules.container import OleContainer

from hwp_samples import build_compound_file


def _container(tree):
    return OleContainer.from_bytes(build_compound_file(tree))


def test_lookup_and_read():
    big = bytes(range(256)) * 20
    with _container({"FileHeader": b"head", "BodyText": {"Section0": b"s0", "Big": big}}) as c:
        fh = c.child_by_name("FileHeader")
        assert fh is not None and fh.is_stream and fh.size == 4
        assert c.stream_bytes(fh) == b"head"

        body = c.child_by_name("BodyText")
        assert body.is_storage
        s0 = c.child_by_name("Section0", body)
        assert s0.display_path == "BodyText/Section0"
        assert c.stream_bytes(s0) == b"s0"
        assert c.stream_bytes(c.child_by_name("Big", body)) == big


def test_missing_and_exact_names():
    with _container({"DocInfo": b"x", "BodyText": {}}) as c:
        assert c.child_by_name("FileHeader") is None
        # 대소문자까지 일치해야 한다
        assert c.child_by_name("docinfo") is None
        body = c.child_by_name("BodyText")
        assert c.child_by_name("Section0", body) is None


def test_stream_is_not_a_storage():
    with _container({"DocInfo": b"x"}) as c:
        doc_info = c.child_by_name("DocInfo")
        assert c.child_by_name("anything", doc_info) is None


def test_storage_is_not_readable():
    with _container({"BodyText": {"Section0": b"a"}}) as c:
        with pytest.raises(ContainerError):
            c.stream_bytes(c.child_by_name("BodyText"))


def test_not_a_compound_file():
    with pytest.raises(ContainerError):
        OleContainer.from_bytes(b"PK\x03\x04 this is a zip" + b"\0" * 600)
