import logging
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from tf_enrichment.batch import color_range, heatmap_matrix
from tf_enrichment.enrichment import SIGNIFICANCE_FDR, EnrichmentResult, TermEnrichment
from tf_enrichment.ui.utils import download_link, format_odds_ratio

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

TABLE_LIMIT = 50
# purple (depleted) to green (enriched)
HEATMAP_COLORSCALE = [[0.0, "rgb(196, 167, 225)"], [1.0, "rgb(69, 194, 111)"]]


def render_table(result: pd.DataFrame) -> None:
    """
    Render the ranked TF table, with rows above the FDR threshold in red.

    :param result: Output of ``TermEnrichment.to_dataframe``
    """
    logger.info("Rendering DataFrame in Streamlit app.")

    def custom_format(n):
        return f"{n:.2e}"

    def highlight_not_significant(row):
        color = "color: #fca5a5" if row["FDR"] > SIGNIFICANCE_FDR else ""
        return [color] * len(row)

    display_df = result.drop(columns=["Term", "Significant"], errors="ignore")
    st.dataframe(
        display_df.style.apply(highlight_not_significant, axis=1).format(
            {"p-value": custom_format, "FDR": custom_format, "Odds ratio": format_odds_ratio,
             "-log(p-value)": "{:.2f}"}
        ),
        use_container_width=True,
        hide_index=True,
        column_config={
            "Rank": None,
            "TF": "TF",
            "Overlap": "Overlap",
            "TF targets": "TF targets",
            "Term genes": "GO genes",
            "Odds ratio": "Odds",
            "p-value": "P",
            "FDR": "FDR",
        },
    )


def render_results(result: TermEnrichment, file_name: str) -> None:
    """
    Render the table of one term with its download links.

    :param result: Enrichment of the active term
    :param file_name: Base name of the downloaded files
    """
    logger.info(f"Rendering results for term: {result.term}")
    if not result.results:
        st.info("Select a GO term with data to see results.")
        return

    render_table(result.to_dataframe(limit=TABLE_LIMIT))
    if len(result.results) > TABLE_LIMIT:
        st.caption(f"Showing {TABLE_LIMIT} of {len(result.results)}")

    st.markdown(
        f'Download results as {download_link(result.to_tsv(), file_name, "tsv")}, '
        f'{download_link(result.to_json(), file_name, "json")}',
        unsafe_allow_html=True,
    )


def _cell_text(log2_or: float, neg_log10_p: float, overlap: float) -> str:
    if np.isnan(log2_or):
        return ""
    return f"{log2_or:.1f}<br>{neg_log10_p:.1f}<br>({int(overlap)})"


def render_heatmap(
    results_by_term: Dict[str, List[EnrichmentResult]],
    terms: Sequence[str],
    tf_names: Sequence[str],
) -> None:
    """
    Render the TF x term heatmap colored by log2(odds ratio).

    Each cell shows log2(OR), -log10(p) and the overlap. Rows are the TFs
    with the best FDR across the selected terms.

    :param results_by_term: Ranked results per term
    :param terms: Terms shown as columns
    :param tf_names: Every TF of the target map
    """
    logger.info(f"Rendering heatmap for {len(terms)} terms.")
    matrices = heatmap_matrix(results_by_term, terms, tf_names)
    log2_or = matrices["log2_odds_ratio"]
    if log2_or.empty:
        st.info("Select at least one GO term with data to draw the heatmap.")
        return

    low, high = color_range(log2_or)
    text = [
        [
            _cell_text(log2_or.iat[i, j], matrices["neg_log10_p"].iat[i, j], matrices["overlap"].iat[i, j])
            for j in range(log2_or.shape[1])
        ]
        for i in range(log2_or.shape[0])
    ]
    fig = go.Figure(
        data=go.Heatmap(
            z=log2_or.to_numpy(),
            x=list(log2_or.columns),
            y=list(log2_or.index),
            zmin=low,
            zmax=high,
            colorscale=HEATMAP_COLORSCALE,
            text=text,
            texttemplate="%{text}",
            hoverongaps=False,
            colorbar={"title": "log2(OR)"},
        )
    )
    fig.update_yaxes(autorange="reversed")
    fig.update_layout(height=max(300, 40 * len(log2_or.index)), margin={"l": 10, "r": 10, "t": 30, "b": 10})
    st.plotly_chart(fig, use_container_width=True, key="tf_term_heatmap")
    st.caption(f"log2(odds-ratio): {low:.1f} → {high:.1f}")
