"""Shared pytest fixtures for the TF enrichment tests."""
import pytest


@pytest.fixture
def scenario_universe():
    """Ten-gene universe G1..G10."""
    return {f"G{i}" for i in range(1, 11)}


@pytest.fixture
def scenario_term_genes():
    return {"G1", "G2", "G3", "G4"}


@pytest.fixture
def scenario_tf_targets():
    """TFA overlaps the term on G1 and G2; TFB misses it entirely."""
    return {"TFA": {"G1", "G2", "G5"}, "TFB": {"G6", "G7"}}


@pytest.fixture
def data_dir(tmp_path):
    """A complete data directory: three evidence files, mapping, GO annotations and universe."""
    (tmp_path / "target.tsv").write_text(
        "TF\tTARGET\tEXPERIMENTOS_POS\tEXPERIMENTOS_NEG\n"
        "AT1G01010\tAT2G00001\texp1\t\n"
        "AT1G01010\tAT2G00002\t\texp2\n"
        "AT1G01020\tAT2G00001\texp3\texp4\n"
    )
    (tmp_path / "dap.tsv").write_text(
        "tf\ttarget\n"
        "AT1G01010\tAT2G00001\n"
        "AT1G01010\tAT2G00003\n"
    )
    (tmp_path / "chip.tsv").write_text(
        "TF\tTARGET\n"
        "at1g01010\tat2g00001\n"
    )
    (tmp_path / "mapping.tsv").write_text("AT1G01010\tNAC1\n")
    (tmp_path / "go_annotations.tsv").write_text(
        "Water deprivation\tSalt stress\n"
        "at2g00001\tAT2G00005\n"
        "AT2G00002\tAT2G00006\n"
        "AT2G00003\t\n"
    )
    (tmp_path / "araport11_genes.tsv").write_text(
        "\n".join(f"AT2G{i:05d}" for i in range(1, 11)) + "\n"
    )
    return tmp_path
