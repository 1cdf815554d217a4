import logging
from typing import Dict

import pandas as pd

from tf_enrichment.enrichment import TermEnrichment

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def collect_results(results: Dict[str, TermEnrichment]) -> str:
    """
    Concatenate the enrichment tables of all terms into one TSV.

    :param results: Term name -> enrichment of that term.
    """
    logger.info("Concatenating all enrichment results.")
    frames = [enrichment.to_dataframe() for enrichment in results.values()]
    if not frames:
        return ""
    return pd.concat(frames, ignore_index=True).to_csv(sep="\t", index=False)
