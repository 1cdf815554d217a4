"""Tests for the command-line interface."""
import json

import pandas as pd
import pytest
from typer.testing import CliRunner

from tf_enrichment.cli import app, safe_file_name

runner = CliRunner()


def test_safe_file_name():
    assert safe_file_name("Response to ABA") == "Response.to.ABA"
    assert safe_file_name("a/b: c?") == "a.b.c"


def test_single_term(data_dir, tmp_path):
    output_dir = tmp_path / "out"
    result = runner.invoke(
        app, ["--term", "Water deprivation", "--data-dir", str(data_dir), "--output-dir", str(output_dir)]
    )
    assert result.exit_code == 0, result.output
    assert "TFs evaluated: 2" in result.output

    df = pd.read_csv(output_dir / "Water.deprivation_enrichment.tsv", sep="\t")
    assert df["TF"].tolist() == ["NAC1", "AT1G01020"]
    assert df["Overlap"].tolist() == [3, 1]
    assert df["p-value"].iloc[0] == pytest.approx(1 / 120)
    assert bool(df["Significant"].iloc[0])

    snapshot = json.loads((output_dir / "enrichment_snapshot.json").read_text())
    assert snapshot["universeSize"] == 10
    assert snapshot["parameters"]["p_value_method"] == "Fisher's Exact Test"
    assert snapshot["resultsByTerm"]["Water deprivation"][0]["odds_ratio"] == "inf"


def test_all_terms_with_filters(data_dir, tmp_path):
    output_dir = tmp_path / "out"
    result = runner.invoke(
        app,
        [
            "--all-terms",
            "-d", str(data_dir),
            "-o", str(output_dir),
            "--min-evidence", "2",
            "--method", "hga",
            "--top", "1",
        ],
    )
    assert result.exit_code == 0, result.output
    combined = pd.read_csv(output_dir / "combined_enrichment.tsv", sep="\t")
    assert combined["Term"].tolist() == ["Water deprivation", "Salt stress"]
    assert set(combined["TF"]) == {"NAC1"}
    assert (output_dir / "Salt.stress_enrichment.tsv").is_file()


def test_missing_universe(data_dir, tmp_path):
    (data_dir / "araport11_genes.tsv").unlink()
    result = runner.invoke(
        app, ["-t", "Water deprivation", "-d", str(data_dir), "-o", str(tmp_path / "out")]
    )
    assert result.exit_code == 1
    assert not (tmp_path / "out").exists()


def test_invalid_method(data_dir):
    result = runner.invoke(app, ["-t", "Water deprivation", "-d", str(data_dir), "--method", "chi2"])
    assert result.exit_code == 1


def test_unknown_source(data_dir):
    result = runner.invoke(app, ["-t", "Water deprivation", "-d", str(data_dir), "-s", "RNASEQ"])
    assert result.exit_code == 1


def test_no_terms(data_dir):
    result = runner.invoke(app, ["-d", str(data_dir)])
    assert result.exit_code == 1
