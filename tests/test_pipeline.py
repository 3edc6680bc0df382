import csv
import json
from pathlib import Path

import pytest

from scripts import run_experiment, salesman_cli


def _args(tmp_path, *extra):
    return run_experiment.build_parser().parse_args(
        [
            "--trials",
            "3",
            "--heuristics",
            "nearest_neighbor,pagerank",
            "--out-dir",
            str(tmp_path / "out"),
            "--run-tag",
            "unit",
            "--no-progress-bar",
            "--heartbeat",
            "1",
            *extra,
        ]
    )


def test_run_experiment_writes_summaries(tmp_path):
    stats = run_experiment.run_experiment(_args(tmp_path, "--save-trials"))
    assert stats.trials_run == 3

    run_dir = tmp_path / "out" / "unit"
    rows = list(csv.DictReader((run_dir / "summary.csv").read_text(encoding="utf-8").splitlines()))
    assert [r["heuristic"] for r in rows] == ["nearest_neighbor", "pagerank"]
    assert all(0.0 <= float(r["fraction"]) <= 1.0 for r in rows)

    first = json.loads((run_dir / "summary.jsonl").read_text(encoding="utf-8").splitlines()[0])
    assert first["trials"] == 3
    assert first["run_tag"] == "unit"

    trials = (run_dir / "trials.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(trials) == 3
    assert "exact_tour" in json.loads(trials[0])
    assert (run_dir / "heartbeat.txt").read_text(encoding="utf-8").strip().endswith("3/3")
    assert (run_dir / "unit.log").exists()


def test_yaml_config_with_cli_override(tmp_path):
    cfg = tmp_path / "exp.yaml"
    cfg.write_text("trials: 2\nseed: 4\nheuristics:\n  - pagerank\n", encoding="utf-8")
    args = run_experiment.build_parser().parse_args(
        ["--config", str(cfg), "--seed", "5", "--out-dir", str(tmp_path / "o"), "--run-tag", "y", "--no-progress-bar"]
    )
    stats = run_experiment.run_experiment(args)
    assert stats.trials_run == 2
    assert stats.heuristics == ("pagerank",)
    saved = json.loads((tmp_path / "o" / "y" / "config.json").read_text(encoding="utf-8"))
    assert saved["seed"] == 5


def test_bad_node_count_exits_with_status_2(tmp_path):
    with pytest.raises(SystemExit) as info:
        run_experiment.main(["--nodes", "0", "--out-dir", str(tmp_path), "--run-tag", "bad", "--no-progress-bar"])
    assert info.value.code == 2


def test_cli_solve_reference(capsys):
    salesman_cli.main(["solve", "--embedding-variant", "autoencoder"])
    out = capsys.readouterr().out
    assert "exact" in out and "97" in out
    for name in ("nearest_neighbor", "pagerank", "spectral", "spectral_rank", "embedding"):
        assert name in out


def test_cli_project_writes_plot(tmp_path, capsys):
    import matplotlib
    matplotlib.use("Agg")
    salesman_cli.main(["project", "--out-dir", str(tmp_path)])
    out = capsys.readouterr().out
    assert "Centered at x" in out
    assert (tmp_path / "kmeans.png").exists()
    assert len((tmp_path / "kmeans.dat").read_text(encoding="utf-8").splitlines()) == 6


def test_failed_run_detaches_log_file(tmp_path, monkeypatch):
    import logging
    from salesman.errors import DecompositionFailure

    def _fail(self, *a, **kw):
        raise DecompositionFailure("eigendecomposition failed", component="spectral")

    monkeypatch.setattr(run_experiment.ExperimentHarness, "run", _fail)
    with pytest.raises(SystemExit) as info:
        run_experiment.main(["--trials", "1", "--out-dir", str(tmp_path), "--run-tag", "fail", "--no-progress-bar"])
    assert info.value.code == 2
    log_path = str((tmp_path / "fail" / "fail.log").resolve())
    attached = [h for h in logging.getLogger().handlers
                if isinstance(h, logging.FileHandler) and h.baseFilename == log_path]
    assert attached == []
