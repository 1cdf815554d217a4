import json
import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, Set

import pandas as pd
from scipy.stats import hypergeom

from tf_enrichment.log_factorial import LogFactorialCache, default_cache

logger = logging.getLogger(__name__)

SIGNIFICANCE_FDR = 0.05
DEFAULT_P_VALUE_METHOD = "Fisher's Exact Test"


@dataclass
class EnrichmentResult:
    """Enrichment of one TF's targets in one term."""

    tf: str
    overlap: int  # targets that are also term genes (a)
    tf_target_count: int  # targets inside the universe (a + b)
    term_gene_count: int  # term genes inside the universe (a + c)
    odds_ratio: float
    p_value: float
    fdr: float = 1.0  # backfilled once the whole batch is corrected

    @property
    def is_significant(self) -> bool:
        return self.fdr <= SIGNIFICANCE_FDR

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class FisherResult(NamedTuple):
    p_value: float
    odds_ratio: float


def odds_ratio(a: int, b: int, c: int, d: int) -> float:
    """
    Sample odds ratio ``(a*d)/(b*c)`` of a 2x2 table.

    A table without off-diagonal mass yields ``inf`` when ``a > 0`` and
    ``0.0`` otherwise, instead of a division error or NaN.
    """
    denominator = b * c
    if denominator == 0:
        return math.inf if a > 0 else 0.0
    return (a * d) / denominator


def fisher_right_tail(
    a: int, b: int, c: int, d: int, cache: Optional[LogFactorialCache] = None
) -> FisherResult:
    """
    One-sided (enrichment) Fisher's exact test on the table::

                        | In term | Not in term |
        TF target       |    a    |      b      |
        Not TF target   |    c    |      d      |

    The p-value is the hypergeometric upper tail ``P(X >= a)``, summed from
    ``k = a`` upward in log space and clamped to ``[0, 1]``.

    Args:
        a: TF targets annotated to the term
        b: TF targets not annotated to the term
        c: Term genes that are not TF targets
        d: Remaining universe genes
        cache: Log-factorial cache, the shared default when None

    Returns:
        FisherResult with the p-value and odds ratio
    """
    cache = default_cache() if cache is None else cache
    population_size = a + b + c + d
    successes = a + c
    draws = a + b

    p_value = 0.0
    for k in range(a, min(successes, draws) + 1):
        p_value += cache.hypergeom_pmf(k, population_size, successes, draws)

    return FisherResult(min(1.0, max(0.0, p_value)), odds_ratio(a, b, c, d))


def hypergeometric_right_tail(
    a: int, b: int, c: int, d: int, cache: Optional[LogFactorialCache] = None
) -> FisherResult:
    """Same upper tail as :func:`fisher_right_tail`, delegated to ``scipy.stats.hypergeom``."""
    p_value = float(hypergeom.sf(a - 1, a + b + c + d, a + c, a + b))
    return FisherResult(min(1.0, max(0.0, p_value)), odds_ratio(a, b, c, d))


P_VALUE_METHODS: Dict[str, Callable[..., FisherResult]] = {
    "Fisher's Exact Test": fisher_right_tail,
    "Hypergeometric Test": hypergeometric_right_tail,
}


def bh_fdr(p_values: Iterable[float]) -> List[float]:
    """
    Benjamini-Hochberg adjusted p-values (q-values).

    The correction runs over the p-values sorted ascending, then every
    q-value is written back to the position of its p-value, so the output
    is index-aligned with the input.

    Args:
        p_values: Raw p-values

    Returns:
        q-values in input order
    """
    p_values = list(p_values)
    m = len(p_values)
    order = sorted(range(m), key=lambda idx: p_values[idx])
    q_values = [1.0] * m

    running_min = 1.0
    for position in range(m - 1, -1, -1):
        idx = order[position]
        running_min = min(running_min, p_values[idx] * m / (position + 1))
        q_values[idx] = running_min
    return q_values


def rank_results(results: List[EnrichmentResult]) -> List[EnrichmentResult]:
    """Sort by ascending p-value; among equal p-values the larger overlap comes first."""
    return sorted(results, key=lambda r: (r.p_value, -r.overlap))


def _restrict_to_universe(genes: Iterable[str], universe: Set[str]) -> Set[str]:
    restricted = set()
    for gene in genes:
        gene = gene.upper()
        if gene in universe:
            restricted.add(gene)
    return restricted


def compute_enrichment(
    tf_targets: Mapping[str, Iterable[str]],
    term_genes: Iterable[str],
    universe: Set[str],
    cache: Optional[LogFactorialCache] = None,
    p_value_method: str = DEFAULT_P_VALUE_METHOD,
) -> List[EnrichmentResult]:
    """
    Test every TF's target set for over-representation among the term genes.

    Gene IDs are compared uppercased, and both the term genes and each
    target set are restricted to the universe first. TFs left with no
    targets, or any call whose term has no genes in the universe, produce no
    rows at all.

    Args:
        tf_targets: TF name -> target gene IDs
        term_genes: Gene IDs annotated to the term under test
        universe: Uppercased background gene IDs
        cache: Log-factorial cache, the shared default when None
        p_value_method: Key of ``P_VALUE_METHODS``

    Returns:
        Results ranked by p-value, with BH-adjusted FDR across all evaluated TFs
    """
    if p_value_method not in P_VALUE_METHODS:
        logger.error(f"Unsupported p_value_method: {p_value_method}")
        raise ValueError(f"Unsupported p_value_method: {p_value_method}")
    test = P_VALUE_METHODS[p_value_method]

    universe_size = len(universe)
    pathway = _restrict_to_universe(term_genes, universe)

    results: List[EnrichmentResult] = []
    skipped = 0
    for tf, targets in tf_targets.items():
        target_genes = _restrict_to_universe(targets, universe)
        if not target_genes or not pathway:
            skipped += 1
            continue

        a = len(target_genes & pathway)
        b = len(target_genes) - a
        c = len(pathway) - a
        d = universe_size - a - b - c

        p_value, ratio = test(a, b, c, d, cache=cache)
        results.append(
            EnrichmentResult(
                tf=tf,
                overlap=a,
                tf_target_count=len(target_genes),
                term_gene_count=len(pathway),
                odds_ratio=ratio,
                p_value=p_value,
            )
        )

    if skipped:
        logger.debug(f"Skipped {skipped} TFs without targets or term genes in the universe")

    for result, q_value in zip(results, bh_fdr([r.p_value for r in results])):
        result.fdr = q_value

    return rank_results(results)


def json_number(value: float) -> Any:
    if math.isinf(value):
        return "inf"
    return float(value)


def _neg_log10(p_value: float) -> float:
    return -math.log10(p_value) if p_value > 0 else 0


class TermEnrichment:
    """
    Enrichment of every TF for a single GO term / biological process.
    """

    def __init__(
        self,
        term: str,
        tf_targets: Mapping[str, Iterable[str]],
        term_genes: Iterable[str],
        universe: Set[str],
        p_value_method_name: str = DEFAULT_P_VALUE_METHOD,
        cache: Optional[LogFactorialCache] = None,
    ):
        """
        Args:
            term: Term name as found in the annotation table
            tf_targets: TF name -> target gene IDs
            term_genes: Gene IDs annotated to the term
            universe: Background gene IDs
            p_value_method_name: Key of ``P_VALUE_METHODS``
            cache: Log-factorial cache, the shared default when None
        """
        self.term = term
        self.tf_targets = tf_targets
        self.term_genes = set(term_genes)
        self.universe = universe
        self.p_value_method_name = p_value_method_name
        self.cache = cache
        self._results: List[EnrichmentResult] = self._compute_enrichment()

    @property
    def results(self) -> List[EnrichmentResult]:
        return self._results

    @property
    def universe_size(self) -> int:
        return len(self.universe)

    def _compute_enrichment(self) -> List[EnrichmentResult]:
        logger.info(
            f"Calculating enrichment of {len(self.tf_targets)} TFs in '{self.term}' "
            f"({len(self.term_genes)} term genes, universe of {self.universe_size})"
        )
        results = compute_enrichment(
            self.tf_targets,
            self.term_genes,
            self.universe,
            cache=self.cache,
            p_value_method=self.p_value_method_name,
        )
        if not results:
            logger.warning(f"No TF could be evaluated for '{self.term}'")
        else:
            logger.info(
                f"'{self.term}': {len(results)} TFs evaluated, "
                f"{sum(r.is_significant for r in results)} with FDR <= {SIGNIFICANCE_FDR}"
            )
        return results

    def to_dataframe(self, limit: Optional[int] = None) -> pd.DataFrame:
        """Return the ranked results as a pandas dataframe, optionally only the top ``limit`` rows."""
        results = self.results if limit is None else self.results[:limit]
        df = pd.DataFrame(
            {
                "Term": [self.term for _ in results],
                "Rank": list(range(1, len(results) + 1)),
                "TF": [r.tf for r in results],
                "Overlap": [r.overlap for r in results],
                "TF targets": [r.tf_target_count for r in results],
                "Term genes": [r.term_gene_count for r in results],
                "Odds ratio": [r.odds_ratio for r in results],
                "p-value": [r.p_value for r in results],
                "-log(p-value)": [_neg_log10(r.p_value) for r in results],
                "FDR": [r.fdr for r in results],
                "Significant": [r.is_significant for r in results],
            }
        )
        return df

    def to_json(self) -> str:
        """Return the results as a JSON string; an infinite odds ratio is written as "inf"."""
        return json.dumps(
            [
                {**r.to_dict(), "odds_ratio": json_number(r.odds_ratio)}
                for r in self.results
            ],
            indent=4,
            separators=(",", ": "),
        )

    def to_tsv(self) -> str:
        return self.to_dataframe().to_csv(sep="\t", index=False)
