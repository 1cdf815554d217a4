"""
Loading of the regulatory evidence feeding the enrichment engine.

Three evidence sources are merged into one interaction list:

- TARGET: curated TF -> target lists, optionally with activation/repression columns
- DAP: DAP-seq binding
- CHIP: ChIP-seq binding
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Set

import pandas as pd

logger = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = ROOT / "data"

SOURCES = ("TARGET", "DAP", "CHIP")
# merge order; the first row seen for an edge provides its tf_id/target_id
LOAD_ORDER = ("DAP", "CHIP", "TARGET")
SOURCE_FILES = {"TARGET": "target.tsv", "DAP": "dap.tsv", "CHIP": "chip.tsv"}
MAPPING_FILE = "mapping.tsv"
GO_ANNOTATIONS_FILE = "go_annotations.tsv"
UNIVERSE_FILE = "araport11_genes.tsv"

POSITIVE_COLUMN = "EXPERIMENTOS_POS"
NEGATIVE_COLUMN = "EXPERIMENTOS_NEG"


@dataclass
class Interaction:
    """One TF -> target row from a single evidence file."""

    tf: str
    target: str
    source: str
    direction: str = "unknown"
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class IntegratedInteraction:
    """A TF -> target edge with the evidence of every source that reports it."""

    tf: str
    target: str
    tf_id: str
    target_id: str
    sources: List[str]
    evidence_count: int = 1
    is_high_confidence: bool = False
    direction: str = "unknown"
    details: Dict[str, Dict[str, str]] = field(default_factory=dict)


def _direction(positive: str, negative: str) -> str:
    if positive and not negative:
        return "activation"
    if negative and not positive:
        return "repression"
    if positive and negative:
        return "both"
    return "unknown"


def _read_tsv(path: Path) -> pd.DataFrame:
    try:
        df = pd.read_csv(path, sep="\t", dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        logger.warning(f"{path} is empty")
        return pd.DataFrame()
    df.columns = [str(c).strip() for c in df.columns]
    return df.fillna("")


def parse_interactions(path: Path, source: str) -> List[Interaction]:
    """
    Parse one evidence TSV.

    The header must hold ``TF`` and ``TARGET`` columns (any case). Rows with an
    empty TF or target are dropped.

    Args:
        path: Path to the TSV file
        source: Evidence source label, one of ``SOURCES``

    Returns:
        Parsed interactions, empty when the required columns are missing
    """
    df = _read_tsv(Path(path))
    df.columns = [c.upper() for c in df.columns]
    if "TF" not in df.columns or "TARGET" not in df.columns:
        logger.warning(f"{path} has no TF/TARGET columns; skipping {source}")
        return []

    interactions = []
    for row in df.to_dict("records"):
        tf = row["TF"].strip()
        target = row["TARGET"].strip()
        if not tf or not target:
            continue
        positive = row.get(POSITIVE_COLUMN, "").strip()
        negative = row.get(NEGATIVE_COLUMN, "").strip()
        interactions.append(
            Interaction(
                tf=tf,
                target=target,
                source=source,
                direction=_direction(positive, negative),
                metadata={"experimentos_pos": positive, "experimentos_neg": negative},
            )
        )

    logger.info(f"Parsed {len(interactions)} {source} interactions from {path}")
    return interactions


def load_gene_mapping(path: Path) -> Dict[str, str]:
    """
    Load a two-column ``gene ID -> symbol`` table without header.

    Args:
        path: Path to the mapping file

    Returns:
        Mapping from uppercased gene ID to symbol
    """
    mapping: Dict[str, str] = {}
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            fields = [s.strip() for s in line.split("\t")]
            if len(fields) >= 2 and fields[0] and fields[1]:
                mapping[fields[0].upper()] = fields[1]
    logger.info(f"Loaded {len(mapping)} gene symbol mappings from {path}")
    return mapping


def load_go_annotations(path: Path) -> Dict[str, List[str]]:
    """
    Load a column-per-term annotation table.

    Each header cell is a term name and the cells below it are the gene IDs
    annotated to that term. Columns may have different lengths.

    Args:
        path: Path to the annotation TSV

    Returns:
        Term name -> uppercased gene IDs
    """
    df = _read_tsv(Path(path))
    annotations: Dict[str, List[str]] = {}
    for term in df.columns:
        if not term or term.startswith("Unnamed:"):
            continue
        annotations[term] = [g.strip().upper() for g in df[term] if g.strip()]
    logger.info(f"Loaded {len(annotations)} GO terms from {path}")
    return annotations


def merge_interactions(
    interactions: Iterable[Interaction], gene_mapping: Optional[Mapping[str, str]] = None
) -> List[IntegratedInteraction]:
    """
    Merge per-source rows into one edge per resolved (TF, target) pair.

    IDs are resolved to symbols through ``gene_mapping`` (falling back to the
    uppercased ID). Each source counts once towards the evidence count, and
    the first known regulation direction replaces ``unknown``.

    Args:
        interactions: Parsed rows of all sources
        gene_mapping: Uppercased gene ID -> symbol

    Returns:
        Merged edges, highest evidence count first
    """
    gene_mapping = gene_mapping or {}

    def resolve(gene_id: str) -> str:
        return gene_mapping.get(gene_id.upper(), gene_id.upper())

    merged: Dict[str, IntegratedInteraction] = {}
    for item in interactions:
        tf_label = resolve(item.tf)
        target_label = resolve(item.target)
        key = f"{tf_label}::{target_label}"

        entry = merged.get(key)
        if entry is None:
            merged[key] = IntegratedInteraction(
                tf=tf_label,
                target=target_label,
                tf_id=item.tf,
                target_id=item.target,
                sources=[item.source],
                direction=item.direction or "unknown",
                details={item.source: item.metadata},
            )
            continue

        if item.source not in entry.sources:
            entry.sources.append(item.source)
            entry.evidence_count = len(entry.sources)
        if entry.direction == "unknown" and item.direction and item.direction != "unknown":
            entry.direction = item.direction
        entry.details.setdefault(item.source, item.metadata)

    integrated = list(merged.values())
    for entry in integrated:
        entry.is_high_confidence = entry.evidence_count >= 2
    integrated.sort(key=lambda e: e.evidence_count, reverse=True)
    return integrated


def load_interactions(
    source_paths: Optional[Mapping[str, Path]] = None,
    mapping_path: Optional[Path] = None,
) -> List[IntegratedInteraction]:
    """
    Parse and merge all evidence files.

    Missing evidence files are skipped with a warning, so a dataset may ship
    only some of the sources.

    Args:
        source_paths: Source label -> TSV path, the files in ``data/`` by default
        mapping_path: Gene symbol mapping, ``data/mapping.tsv`` by default

    Returns:
        Merged interactions
    """
    if source_paths is None:
        source_paths = {source: DATA_DIR / name for source, name in SOURCE_FILES.items()}
    if mapping_path is None:
        mapping_path = DATA_DIR / MAPPING_FILE

    raw: List[Interaction] = []
    ordered = [s for s in LOAD_ORDER if s in source_paths]
    ordered += [s for s in source_paths if s not in LOAD_ORDER]
    for source in ordered:
        path = Path(source_paths[source])
        if not path.is_file():
            logger.warning(f"{source} evidence file not found: {path}")
            continue
        raw.extend(parse_interactions(path, source))

    gene_mapping: Dict[str, str] = {}
    if Path(mapping_path).is_file():
        gene_mapping = load_gene_mapping(Path(mapping_path))
    else:
        logger.warning(f"Gene mapping not found at {mapping_path}; using raw IDs")

    integrated = merge_interactions(raw, gene_mapping)
    logger.info(f"Integrated {len(integrated)} interactions from {len(raw)} rows")
    return integrated


def build_tf_targets(
    interactions: Iterable[IntegratedInteraction],
    min_evidence: int = 1,
    sources: Iterable[str] = SOURCES,
) -> Dict[str, Set[str]]:
    """
    Collect the target gene IDs of each TF.

    Args:
        interactions: Merged interactions
        min_evidence: Minimum number of sources reporting an edge
        sources: Keep edges reported by at least one of these sources

    Returns:
        TF label -> uppercased target gene IDs
    """
    sources = set(sources)
    tf_targets: Dict[str, Set[str]] = {}
    for interaction in interactions:
        if interaction.evidence_count < min_evidence:
            continue
        if not sources.intersection(interaction.sources):
            continue
        target_id = (interaction.target_id or interaction.target or "").upper()
        if not target_id:
            continue
        tf_targets.setdefault(interaction.tf, set()).add(target_id)
    return tf_targets
