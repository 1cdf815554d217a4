import logging
from pathlib import Path
from typing import Dict, List, Set, Tuple

import streamlit as st
from streamlit import session_state as state

from tf_enrichment.background_gene_set import BackgroundGeneSet
from tf_enrichment.batch import run_batch
from tf_enrichment.enrichment import DEFAULT_P_VALUE_METHOD, P_VALUE_METHODS, SIGNIFICANCE_FDR
from tf_enrichment.log_factorial import LogFactorialCache
from tf_enrichment.regulatory_network import (
    DATA_DIR,
    GO_ANNOTATIONS_FILE,
    MAPPING_FILE,
    SOURCE_FILES,
    SOURCES,
    UNIVERSE_FILE,
    IntegratedInteraction,
    build_tf_targets,
    load_go_annotations,
    load_interactions,
)
from tf_enrichment.ui.processing import collect_results
from tf_enrichment.ui.rendering import render_heatmap, render_results
from tf_enrichment.ui.utils import download_link

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

st.set_page_config(
    page_title="TF Enrichment", layout="wide", initial_sidebar_state="expanded"
)

GO_TERMS = [
    ("Water deprivation", "Water deprivation (GO:0009414)"),
    ("Response to ABA", "Response to abscisic acid (GO:0009737)"),
    ("Salt stress", "Salt stress (GO:0009651)"),
    ("Osmotic stress", "Osmotic stress (GO:0006970)"),
    ("Response to auxin", "Response to auxin (GO:0009733)"),
    ("Response to nitrate", "Response to nitrate (GO:0010167)"),
]
DEFAULT_GO = ["Water deprivation", "Response to ABA"]


@st.cache_data
def load_dataset(data_dir: str) -> Tuple[List[IntegratedInteraction], Dict[str, List[str]]]:
    data_path = Path(data_dir)
    interactions = load_interactions(
        {source: data_path / name for source, name in SOURCE_FILES.items()},
        data_path / MAPPING_FILE,
    )
    annotations_path = data_path / GO_ANNOTATIONS_FILE
    go_annotations = load_go_annotations(annotations_path) if annotations_path.is_file() else {}
    return interactions, go_annotations


@st.cache_data
def load_universe(universe_path: str) -> Set[str]:
    return BackgroundGeneSet(universe_path).genes


@st.cache_resource
def factorial_cache() -> LogFactorialCache:
    return LogFactorialCache()


def _ensure_base_state(available: List[str]) -> None:
    if "min_evidence" not in state:
        state.min_evidence = 1
    if "sources" not in state:
        state.sources = list(SOURCES)
    if "view_mode" not in state:
        state.view_mode = "Table"
    if "p_val_method" not in state:
        state.p_val_method = DEFAULT_P_VALUE_METHOD
    if "active_term" not in state or state.active_term not in available:
        state.active_term = available[0] if available else ""
    if "selected_terms" not in state:
        defaults = [t for t in DEFAULT_GO if t in available]
        state.selected_terms = defaults or available[:2]
    else:
        state.selected_terms = [t for t in state.selected_terms if t in available]


def main() -> None:
    logger.info("Starting the Streamlit app")
    st.sidebar.title("TF enrichment")
    st.sidebar.write(
        """Tests whether the targets of each transcription factor are over-represented
among the genes of a GO term (right-tailed Fisher's exact test, Benjamini-Hochberg FDR)."""
    )

    interactions, go_annotations = load_dataset(str(DATA_DIR))
    labels = dict(GO_TERMS)
    for term in go_annotations:
        labels.setdefault(term, term)
    available = [term for term in labels if go_annotations.get(term)]
    _ensure_base_state(available)

    st.sidebar.selectbox(
        "Minimum evidence",
        [1, 2, 3],
        format_func=lambda n: f"≥{n} evidence",
        key="min_evidence",
    )
    st.sidebar.multiselect("Evidence sources", list(SOURCES), key="sources")
    st.sidebar.selectbox("P-value method", list(P_VALUE_METHODS), key="p_val_method")

    st.subheader("Enrichment (GO + Fisher)")
    try:
        universe = load_universe(str(DATA_DIR / UNIVERSE_FILE))
    except FileNotFoundError:
        st.error(
            f"Required reference gene list is missing. Add data/{UNIVERSE_FILE} "
            "(one column of AT gene IDs)."
        )
        return

    if not available:
        st.warning("No GO term in the annotation table has genes.")
        return

    tf_targets = build_tf_targets(interactions, min_evidence=state.min_evidence, sources=state.sources)

    mode = st.radio("View", ["Table", "Heatmap"], horizontal=True, key="view_mode")
    st.selectbox(
        "GO term",
        available,
        format_func=lambda t: labels[t],
        key="active_term",
    )
    if mode == "Heatmap":
        st.multiselect("Heatmap terms", available, format_func=lambda t: labels[t], key="selected_terms")

    terms = list(dict.fromkeys([state.active_term] + list(state.selected_terms)))
    batch, enrichments = run_batch(
        terms,
        tf_targets,
        go_annotations,
        universe,
        p_value_method_name=state.p_val_method,
        cache=factorial_cache(),
    )

    col1, col2, col3 = st.columns(3)
    col1.metric("Universe", f"{batch.universe_size:,}")
    col2.metric("GO genes", f"{batch.term_gene_counts.get(state.active_term, 0):,}")
    col3.metric("TFs evaluated", f"{len(tf_targets):,}")
    st.caption(f"Rows with FDR > {SIGNIFICANCE_FDR} are shown in red. Sorted by p-value (Fisher, right tail).")

    if mode == "Table":
        render_results(enrichments[state.active_term], state.active_term.replace(" ", "_"))
    else:
        heatmap_terms = [t for t in state.selected_terms if t in batch.results_by_term]
        render_heatmap(batch.results_by_term, heatmap_terms, list(tf_targets.keys()))

    st.markdown(
        f'All computed terms: {download_link(collect_results(enrichments), "tf_enrichment", "tsv")}',
        unsafe_allow_html=True,
    )


main()
