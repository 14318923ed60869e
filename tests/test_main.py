from __future__ import annotations

import main


def test_parse_cook_arguments():
    args = main.parse_args(["cook", "--days", "2", "-p", "pfx2as,as2rel", "-t", "3", "-l", "5", "--summarize-only"])
    assert (args.command, args.days, args.threads, args.limit, args.summarize_only) == ("cook", 2, 3, 5, True)
    assert main._split(args.processors) == ["pfx2as", "as2rel"]
    assert main._split(None) is None


def test_unknown_processor_exits_with_usage_error(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'ribeye.db'}")
    monkeypatch.setenv("RESULTS_DIR", str(tmp_path / "results"))
    monkeypatch.setenv("CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setattr(main.signal, "signal", lambda *args: None)
    assert main.main(["cook", "-p", "nope"]) == 2


def test_missing_env_file_fails(tmp_path):
    assert main.main(["--env", str(tmp_path / "missing.env"), "cook"]) == 1
