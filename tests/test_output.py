from __future__ import annotations

import os
from datetime import date

import pytest

from ribeye import output
from ribeye.errors import PublishError
from ribeye.models import DailyAggregate
from ribeye.output import OutputWriter, load_artifact, render

DAILY = DailyAggregate(
    processor="pfx2as",
    date=date(2024, 5, 1),
    payload={"192.0.2.0/24": [64500, 64501]},
    sources=("https://data.example.net/rrc00/bview.20240501.0000.gz",),
    skipped=1,
)


def test_publish_writes_both_variants(writer, settings):
    plain, compressed = writer.publish(DAILY)
    assert plain == settings.results_dir / "pfx2as" / "2024-05-01" / "latest.json"
    assert compressed.name == "latest.json.bz2"
    assert load_artifact(plain) == load_artifact(compressed)
    assert load_artifact(plain)["data"] == {"192.0.2.0/24": [64500, 64501]}
    assert sorted(os.listdir(plain.parent)) == ["latest.json", "latest.json.bz2"]


def test_render_is_canonical():
    reordered = DailyAggregate(
        processor="pfx2as",
        date=date(2024, 5, 1),
        payload=dict(reversed(list({"198.51.100.0/24": [1], "192.0.2.0/24": [2]}.items()))),
        sources=DAILY.sources,
    )
    same = DailyAggregate(
        processor="pfx2as",
        date=date(2024, 5, 1),
        payload={"192.0.2.0/24": [2], "198.51.100.0/24": [1]},
        sources=DAILY.sources,
    )
    assert render(reordered) == render(same)
    assert render(DAILY).endswith(b"\n")


def test_republish_replaces_content(writer):
    writer.publish(DAILY)
    updated = DailyAggregate("pfx2as", DAILY.date, {"192.0.2.0/24": [64500]}, DAILY.sources)
    plain, _ = writer.publish(updated)
    assert plain.read_bytes() == render(updated)


def test_transient_write_failure_is_retried(writer, monkeypatch):
    calls = []
    real = output._atomic_write

    def flaky(path, data):
        calls.append(path)
        if len(calls) == 1:
            raise OSError("disk hiccup")
        real(path, data)

    monkeypatch.setattr(output, "_atomic_write", flaky)
    plain, _ = writer.publish(DAILY)
    assert plain.read_bytes() == render(DAILY)


def test_persistent_write_failure_raises_publish_error(writer, monkeypatch):
    def broken(path, data):
        raise OSError("read-only file system")

    monkeypatch.setattr(output, "_atomic_write", broken)
    with pytest.raises(PublishError):
        writer.publish(DAILY)


def test_failed_write_leaves_no_temp_files(tmp_path, monkeypatch):
    target = tmp_path / "latest.json"
    target.write_bytes(b"old")

    def failing_replace(src, dst):
        raise OSError("rename failed")

    monkeypatch.setattr(output.os, "replace", failing_replace)
    with pytest.raises(OSError):
        output._atomic_write(target, b"new")
    assert target.read_bytes() == b"old"
    assert os.listdir(tmp_path) == ["latest.json"]
