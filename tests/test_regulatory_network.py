"""Tests for evidence loading, merging and the gene universe."""
import pytest

from tf_enrichment.background_gene_set import BackgroundGeneSet
from tf_enrichment.regulatory_network import (
    Interaction,
    build_tf_targets,
    load_gene_mapping,
    load_go_annotations,
    load_interactions,
    merge_interactions,
    parse_interactions,
)


def _load(data_dir):
    return load_interactions(
        {
            "TARGET": data_dir / "target.tsv",
            "DAP": data_dir / "dap.tsv",
            "CHIP": data_dir / "chip.tsv",
        },
        data_dir / "mapping.tsv",
    )


class TestParsing:
    def test_parse_target_with_direction(self, data_dir):
        rows = parse_interactions(data_dir / "target.tsv", "TARGET")
        assert [(r.tf, r.target, r.direction) for r in rows] == [
            ("AT1G01010", "AT2G00001", "activation"),
            ("AT1G01010", "AT2G00002", "repression"),
            ("AT1G01020", "AT2G00001", "both"),
        ]
        assert rows[0].metadata == {"experimentos_pos": "exp1", "experimentos_neg": ""}

    def test_header_is_case_insensitive(self, data_dir):
        rows = parse_interactions(data_dir / "dap.tsv", "DAP")
        assert len(rows) == 2
        assert all(r.direction == "unknown" and r.source == "DAP" for r in rows)

    def test_missing_columns_gives_nothing(self, tmp_path):
        path = tmp_path / "bad.tsv"
        path.write_text("GENE\tPARTNER\nA\tB\n")
        assert parse_interactions(path, "DAP") == []

    def test_empty_file_gives_nothing(self, tmp_path):
        path = tmp_path / "empty.tsv"
        path.write_text("")
        assert parse_interactions(path, "CHIP") == []

    def test_rows_without_ids_are_dropped(self, tmp_path):
        path = tmp_path / "chip.tsv"
        path.write_text("TF\tTARGET\nAT1G01010\t\n\tAT2G00001\nAT1G01010\tAT2G00004\n")
        rows = parse_interactions(path, "CHIP")
        assert [(r.tf, r.target) for r in rows] == [("AT1G01010", "AT2G00004")]


class TestMapping:
    def test_load_gene_mapping(self, data_dir):
        assert load_gene_mapping(data_dir / "mapping.tsv") == {"AT1G01010": "NAC1"}

    def test_load_go_annotations(self, data_dir):
        annotations = load_go_annotations(data_dir / "go_annotations.tsv")
        assert annotations == {
            "Water deprivation": ["AT2G00001", "AT2G00002", "AT2G00003"],
            "Salt stress": ["AT2G00005", "AT2G00006"],
        }


class TestMerge:
    def test_evidence_is_counted_per_source(self, data_dir):
        merged = _load(data_dir)
        assert len(merged) == 4

        top = merged[0]
        assert (top.tf, top.target) == ("NAC1", "AT2G00001")
        assert top.sources == ["DAP", "CHIP", "TARGET"]
        assert top.evidence_count == 3
        assert top.is_high_confidence
        assert top.direction == "activation"
        assert top.tf_id == "AT1G01010"
        assert set(top.details) == {"DAP", "CHIP", "TARGET"}

        rest = {(e.tf, e.target): e for e in merged[1:]}
        assert rest[("NAC1", "AT2G00002")].direction == "repression"
        assert not rest[("AT1G01020", "AT2G00001")].is_high_confidence
        assert all(e.evidence_count == 1 for e in rest.values())

    def test_duplicate_rows_of_one_source_count_once(self):
        rows = [
            Interaction("TF1", "G1", "DAP"),
            Interaction("tf1", "g1", "DAP"),
        ]
        merged = merge_interactions(rows)
        assert len(merged) == 1
        assert merged[0].evidence_count == 1
        assert merged[0].sources == ["DAP"]

    def test_first_known_direction_wins(self):
        rows = [
            Interaction("TF1", "G1", "DAP"),
            Interaction("TF1", "G1", "TARGET", direction="repression"),
            Interaction("TF1", "G1", "CHIP", direction="activation"),
        ]
        assert merge_interactions(rows)[0].direction == "repression"

    def test_missing_files_are_skipped(self, data_dir):
        merged = load_interactions(
            {"TARGET": data_dir / "missing.tsv", "DAP": data_dir / "dap.tsv"},
            data_dir / "no_mapping.tsv",
        )
        assert sorted((e.tf, e.target) for e in merged) == [
            ("AT1G01010", "AT2G00001"),
            ("AT1G01010", "AT2G00003"),
        ]


class TestBuildTfTargets:
    def test_all_evidence(self, data_dir):
        assert build_tf_targets(_load(data_dir)) == {
            "NAC1": {"AT2G00001", "AT2G00002", "AT2G00003"},
            "AT1G01020": {"AT2G00001"},
        }

    def test_min_evidence(self, data_dir):
        assert build_tf_targets(_load(data_dir), min_evidence=2) == {"NAC1": {"AT2G00001"}}
        assert build_tf_targets(_load(data_dir), min_evidence=3) == {"NAC1": {"AT2G00001"}}

    def test_source_filter(self, data_dir):
        assert build_tf_targets(_load(data_dir), sources=["DAP"]) == {
            "NAC1": {"AT2G00001", "AT2G00003"},
        }
        assert build_tf_targets(_load(data_dir), sources=[]) == {}


class TestBackgroundGeneSet:
    def test_load(self, data_dir):
        background = BackgroundGeneSet(str(data_dir / "araport11_genes.tsv"))
        assert background.size == 10
        assert background.name == "araport11_genes"
        assert background.has_gene("at2g00004")
        assert not background.has_gene("AT2G00011")

    def test_genes_are_uppercased_and_blanks_skipped(self, tmp_path):
        path = tmp_path / "universe.txt"
        path.write_text("at1g01010\n\n  AT1G01020  \nAT1G01010\n")
        background = BackgroundGeneSet(str(path), name="custom")
        assert background.genes == {"AT1G01010", "AT1G01020"}
        assert background.name == "custom"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="reference gene list is missing"):
            BackgroundGeneSet(str(tmp_path / "araport11_genes.tsv"))
