"""
Tests for the experiment driver in main.py (no plots are drawn).
"""

import numpy as np
import pandas as pd

import main


def test_preprocess_fills_missing_and_standardises():
    df = pd.DataFrame({
        "a": [1.0, 2.0, np.nan, 4.0],
        "b": [10.0, 10.5, 11.0, 12.0],
        "label": ["x", "y", "x", "y"],
    })
    X = main.preprocess(df)

    assert X.shape == (4, 2)
    assert not np.isnan(X).any()
    np.testing.assert_allclose(X.mean(axis=0), 0.0, atol=1e-12)


def test_run_experiments_covers_every_metric_and_k(monkeypatch):
    monkeypatch.setattr(main, "K_VALUES", [2, 3, 50])
    rng = np.random.default_rng(3)
    X = rng.normal(size=(20, 3))

    results = main.run_experiments(X, "toy")

    for metric in main.METRICS:
        assert sorted(results[metric]) == [2, 3]
        for k, r in results[metric].items():
            assert len(r["model"].medoid_indices_) == k
            assert r["cost"] == r["model"].inertia_


def test_save_report_writes_table(monkeypatch, tmp_path):
    monkeypatch.setattr(main, "OUTPUT_DIR", str(tmp_path))
    X = np.random.default_rng(5).normal(size=(12, 2))
    results = main.run_experiments(X, "toy")

    main.save_report({"toy": results})

    report = (tmp_path / "analysis_report.txt").read_text(encoding="utf-8")
    assert "Dataset: toy" in report
    assert "manhattan" in report
