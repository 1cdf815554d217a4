import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

import numpy as np
import pandas as pd

from tf_enrichment.enrichment import (
    DEFAULT_P_VALUE_METHOD,
    EnrichmentResult,
    TermEnrichment,
    json_number,
)
from tf_enrichment.log_factorial import LogFactorialCache

logger = logging.getLogger(__name__)

HEATMAP_TOP_N = 30
P_VALUE_FLOOR = 1e-12


@dataclass
class BatchResult:
    """Enrichment of the same TF targets in several terms."""

    results_by_term: Dict[str, List[EnrichmentResult]] = field(default_factory=dict)
    term_gene_counts: Dict[str, int] = field(default_factory=dict)
    universe_size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready payload: ``{resultsByTerm, termGeneCounts, universeSize}``."""
        return {
            "resultsByTerm": {
                term: [
                    {**r.to_dict(), "odds_ratio": json_number(r.odds_ratio)}
                    for r in results
                ]
                for term, results in self.results_by_term.items()
            },
            "termGeneCounts": dict(self.term_gene_counts),
            "universeSize": self.universe_size,
        }


def run_batch(
    terms: Sequence[str],
    tf_targets: Mapping[str, Iterable[str]],
    go_annotations: Mapping[str, Iterable[str]],
    universe: Set[str],
    p_value_method_name: str = DEFAULT_P_VALUE_METHOD,
    cache: Optional[LogFactorialCache] = None,
) -> Tuple[BatchResult, Dict[str, TermEnrichment]]:
    """
    Run the enrichment once per requested term.

    Terms missing from ``go_annotations`` are tested with an empty gene set
    and therefore yield no rows.

    Args:
        terms: Term names to test
        tf_targets: TF name -> target gene IDs
        go_annotations: Term name -> annotated gene IDs
        universe: Uppercased background gene IDs
        p_value_method_name: P-value calculation method
        cache: Log-factorial cache shared by all terms of the batch

    Returns:
        The batch payload and the per-term enrichment objects

    Raises:
        ValueError: If no term is requested
    """
    if not terms:
        raise ValueError("No terms provided")

    cache = LogFactorialCache() if cache is None else cache
    batch = BatchResult(universe_size=len(universe))
    enrichments: Dict[str, TermEnrichment] = {}
    for term in terms:
        if term not in go_annotations:
            logger.warning(f"Term '{term}' has no annotations")
        genes = {g.upper() for g in go_annotations.get(term, [])}
        batch.term_gene_counts[term] = len(genes)
        enrichment = TermEnrichment(
            term,
            tf_targets,
            genes,
            universe,
            p_value_method_name=p_value_method_name,
            cache=cache,
        )
        enrichments[term] = enrichment
        batch.results_by_term[term] = enrichment.results
    return batch, enrichments


def top_tfs_by_fdr(
    results_by_term: Mapping[str, List[EnrichmentResult]],
    terms: Sequence[str],
    tf_names: Iterable[str],
    top_n: int = HEATMAP_TOP_N,
) -> List[str]:
    """
    TFs with the best (lowest) FDR across ``terms``, ``top_n`` at most.

    A TF without a row for a term counts as FDR 1 for that term.
    """
    by_term = {
        term: {r.tf: r for r in results_by_term.get(term, [])} for term in terms
    }
    scored = []
    for tf in tf_names:
        best = 1.0
        for term in terms:
            row = by_term[term].get(tf)
            if row is not None and row.fdr < best:
                best = row.fdr
        scored.append((tf, best))
    scored.sort(key=lambda item: item[1])
    return [tf for tf, _ in scored[:top_n]]


def heatmap_matrix(
    results_by_term: Mapping[str, List[EnrichmentResult]],
    terms: Sequence[str],
    tf_names: Iterable[str],
    top_n: int = HEATMAP_TOP_N,
) -> Dict[str, pd.DataFrame]:
    """
    Cell values of the TF x term heatmap.

    Args:
        results_by_term: Ranked results of each term
        terms: Terms shown as columns
        tf_names: Candidate TFs, usually every key of the TF target map
        top_n: Number of TF rows to keep

    Returns:
        Dictionary with three TF x term dataframes: ``log2_odds_ratio``,
        ``neg_log10_p`` (p-values floored at ``P_VALUE_FLOOR``) and ``overlap``.
        Cells without a result, or with an odds ratio that is not a finite
        positive number, are NaN.
    """
    terms = list(dict.fromkeys(terms))
    rows = top_tfs_by_fdr(results_by_term, terms, tf_names, top_n=top_n)
    log2_or = pd.DataFrame(np.nan, index=rows, columns=list(terms))
    neg_log10_p = log2_or.copy()
    overlap = log2_or.copy()

    for term in terms:
        for r in results_by_term.get(term, []):
            if r.tf not in log2_or.index:
                continue
            if not math.isfinite(r.odds_ratio) or r.odds_ratio <= 0:
                continue
            log2_or.loc[r.tf, term] = np.log2(r.odds_ratio)
            neg_log10_p.loc[r.tf, term] = -np.log10(max(r.p_value, P_VALUE_FLOOR))
            overlap.loc[r.tf, term] = r.overlap

    return {"log2_odds_ratio": log2_or, "neg_log10_p": neg_log10_p, "overlap": overlap}


def color_range(log2_odds_ratio: pd.DataFrame) -> Tuple[float, float]:
    """
    Color scale bounds for the heatmap: always include 0, widened by one on
    each side when the values span nothing.
    """
    values = log2_odds_ratio.to_numpy(dtype=float)
    values = values[~np.isnan(values)]
    low = min(0.0, float(values.min())) if values.size else 0.0
    high = max(0.0, float(values.max())) if values.size else 0.0
    if low == high:
        low -= 1
        high += 1
    return low, high
