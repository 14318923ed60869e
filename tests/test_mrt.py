from __future__ import annotations

import ipaddress
from types import SimpleNamespace

import pytest

from ribeye.collectors import mrt
from ribeye.collectors.mrt import MrtDecoder, parse_as_path, to_record
from ribeye.errors import DecodeError, StorageError
from tests.factories import make_ref


def _elem(prefix="192.0.2.0/24", as_path="65000 3356 64500", elem_type="A", **extra):
    fields = dict(prefix=prefix, as_path=as_path, elem_type=elem_type, peer_asn=65000, peer_ip="192.0.2.1", timestamp=1714521600.0)
    fields.update(extra)
    return SimpleNamespace(**fields)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("65000 3356 64500", (65000, 3356, 64500)),
        ("65000 65000 64500", (65000, 65000, 64500)),
        ("65000 {64500,64501}", (65000, frozenset({64500, 64501}))),
        ("65000 (65100 65101) 64500", (65000, 64500)),
        ("65000 {}", (65000,)),
        ("", ()),
        (None, ()),
        ("65000 bogus", ()),
    ],
)
def test_parse_as_path(text, expected):
    assert parse_as_path(text) == expected


def test_to_record_announcement():
    record = to_record(_elem(), "rrc00")
    assert record.prefix == ipaddress.ip_network("192.0.2.0/24")
    assert record.as_path == (65000, 3356, 64500)
    assert record.kind == "announcement"
    assert record.origins() == frozenset({64500})


def test_to_record_withdrawal_and_bad_prefix():
    withdrawal = to_record(_elem(elem_type="W", as_path=None), "rrc00")
    assert withdrawal.kind == "withdrawal" and withdrawal.as_path == ()
    assert to_record(_elem(prefix="not-a-prefix"), "rrc00") is None


def test_decoder_drops_bad_elements():
    records = list(MrtDecoder._records(iter([_elem(), _elem(prefix="??"), _elem("2001:db8::/32")]), make_ref()))
    assert [str(r.prefix) for r in records] == ["192.0.2.0/24", "2001:db8::/32"]


def test_decoder_wraps_stream_errors():
    def truncated():
        yield _elem()
        raise RuntimeError("unexpected end of MRT stream")

    stream = MrtDecoder._records(truncated(), make_ref())
    assert next(stream).peer_asn == 65000
    with pytest.raises(DecodeError):
        next(stream)


def test_open_failure_is_a_storage_error(monkeypatch):
    def refuse(**kwargs):
        raise IOError("connection refused")

    monkeypatch.setattr(mrt, "Parser", refuse)
    with pytest.raises(StorageError):
        MrtDecoder()(make_ref())


def test_decoder_passes_cache_dir(monkeypatch, tmp_path):
    opened = []

    def fake_parser(**kwargs):
        opened.append(kwargs)
        return iter([_elem()])

    monkeypatch.setattr(mrt, "Parser", fake_parser)
    ref = make_ref()
    records = list(MrtDecoder(tmp_path)(ref))
    assert opened == [{"url": ref.location, "cache_dir": str(tmp_path)}]
    assert len(records) == 1
