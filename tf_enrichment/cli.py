import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import pandas as pd
import typer

from tf_enrichment.background_gene_set import BackgroundGeneSet
from tf_enrichment.batch import run_batch
from tf_enrichment.enrichment import SIGNIFICANCE_FDR, TermEnrichment
from tf_enrichment.regulatory_network import (
    DATA_DIR,
    GO_ANNOTATIONS_FILE,
    MAPPING_FILE,
    SOURCE_FILES,
    SOURCES,
    UNIVERSE_FILE,
    build_tf_targets,
    load_go_annotations,
    load_interactions,
)

# Set up logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

app = typer.Typer(
    help="TF target enrichment in GO terms (Fisher's exact test, BH FDR)",
    add_completion=False,
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)

METHOD_MAPPING = {
    "fisher": "Fisher's Exact Test",
    "hga": "Hypergeometric Test",
}


def safe_file_name(name: str) -> str:
    """Replace characters that are awkward in file names with dots and collapse runs of dots."""
    for char in ['/', '\\', ':', '*', '?', '"', '<', '>', '|', ' ']:
        name = name.replace(char, ".")
    return re.sub(r"\.+", ".", name).strip(".")


def write_results(
    enrichments: List[TermEnrichment],
    output_dir: Path,
    top: int,
) -> Path:
    """
    Write one TSV per term and a combined TSV.

    Args:
        enrichments: Per-term enrichment runs
        output_dir: Directory receiving the files
        top: Rows kept per term, 0 for all

    Returns:
        Path of the combined TSV
    """
    limit = top if top > 0 else None
    frames = []
    for enrichment in enrichments:
        df = enrichment.to_dataframe(limit=limit)
        output_file = output_dir / f"{safe_file_name(enrichment.term)}_enrichment.tsv"
        df.to_csv(output_file, sep="\t", index=False)
        logger.info(f"Saved {len(df)} rows to {output_file}")
        frames.append(df)

    combined_file = output_dir / "combined_enrichment.tsv"
    combined = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame()
    combined.to_csv(combined_file, sep="\t", index=False)
    logger.info(f"Saved combined results to {combined_file}")
    return combined_file


@app.command(help="Test every TF's targets for enrichment in the given GO terms")
def main(
    terms: List[str] = typer.Option(
        None,
        "--term",
        "-t",
        help="GO term / biological process name, as in the annotation header. Repeatable.",
    ),
    all_terms: bool = typer.Option(
        False,
        "--all-terms",
        help="Test every term of the annotation table.",
    ),
    data_dir: Path = typer.Option(
        DATA_DIR,
        "--data-dir",
        "-d",
        file_okay=False,
        dir_okay=True,
        help="Directory holding target.tsv, dap.tsv, chip.tsv, mapping.tsv, go_annotations.tsv and the universe.",
    ),
    universe: Optional[Path] = typer.Option(
        None,
        "--universe",
        "-u",
        help=f"Gene universe file, one ID per line. Default: <data-dir>/{UNIVERSE_FILE}",
        show_default=False,
    ),
    annotations: Optional[Path] = typer.Option(
        None,
        "--annotations",
        "-a",
        help=f"Column-per-term GO annotation TSV. Default: <data-dir>/{GO_ANNOTATIONS_FILE}",
        show_default=False,
    ),
    min_evidence: int = typer.Option(
        1,
        "--min-evidence",
        min=1,
        max=len(SOURCES),
        help="Minimum number of evidence sources reporting a TF -> target edge.",
    ),
    sources: List[str] = typer.Option(
        None,
        "--source",
        "-s",
        help="Evidence source to include (TARGET, DAP, CHIP). Repeatable. Default: all.",
        show_default=False,
    ),
    p_value_method: str = typer.Option(
        "fisher",
        "--method",
        help="P-value calculation method: 'fisher' (Fisher's Exact Test) or 'hga' (Hypergeometric Test)",
    ),
    top: int = typer.Option(
        50,
        "--top",
        min=0,
        help="Rows written per term (0 = all).",
    ),
    output_dir: Path = typer.Option(
        Path("cli_results"),
        "--output-dir",
        "-o",
        help="Output directory for results",
    ),
):
    """
    Run the TF enrichment for one or more GO terms from the command line.
    """
    if p_value_method.lower() not in METHOD_MAPPING:
        typer.echo("Error: Method must be 'fisher' or 'hga'", err=True)
        raise typer.Exit(code=1)
    p_value_method_name = METHOD_MAPPING[p_value_method.lower()]

    sources = [s.upper() for s in sources] if sources else list(SOURCES)
    unknown = [s for s in sources if s not in SOURCES]
    if unknown:
        typer.echo(f"Error: Unknown evidence source(s): {', '.join(unknown)}", err=True)
        raise typer.Exit(code=1)

    if not terms and not all_terms:
        typer.echo("Error: Provide at least one --term or use --all-terms", err=True)
        raise typer.Exit(code=1)

    universe = universe or data_dir / UNIVERSE_FILE
    annotations = annotations or data_dir / GO_ANNOTATIONS_FILE

    try:
        background = BackgroundGeneSet(str(universe))
    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if not annotations.is_file():
        typer.echo(f"Error: GO annotation file not found: {annotations}", err=True)
        raise typer.Exit(code=1)
    go_annotations = load_go_annotations(annotations)

    if all_terms:
        terms = list(go_annotations.keys())
    if not terms:
        typer.echo("Error: No terms found in the annotation table", err=True)
        raise typer.Exit(code=1)

    interactions = load_interactions(
        {source: data_dir / name for source, name in SOURCE_FILES.items()},
        data_dir / MAPPING_FILE,
    )
    tf_targets = build_tf_targets(interactions, min_evidence=min_evidence, sources=sources)

    typer.echo(f"Terms: {len(terms)}")
    typer.echo(f"Universe: {background.size} genes ({background.name})")
    typer.echo(f"TFs evaluated: {len(tf_targets)}")
    typer.echo(f"Evidence: >= {min_evidence} from {', '.join(sources)}")
    typer.echo(f"P-value Method: {p_value_method_name}")
    typer.echo(f"Output Directory: {output_dir}")
    typer.echo("")

    output_dir.mkdir(parents=True, exist_ok=True)
    batch, enrichments = run_batch(
        terms,
        tf_targets,
        go_annotations,
        background.genes,
        p_value_method_name=p_value_method_name,
    )
    write_results(list(enrichments.values()), output_dir, top)

    snapshot_file = output_dir / "enrichment_snapshot.json"
    with open(snapshot_file, "w") as f:
        json.dump(
            {
                "universe": background.name,
                "parameters": {
                    "terms": list(terms),
                    "min_evidence": min_evidence,
                    "sources": sources,
                    "p_value_method": p_value_method_name,
                    "significance_fdr": SIGNIFICANCE_FDR,
                },
                "tf_count": len(tf_targets),
                **batch.to_dict(),
                "timestamp": datetime.now().isoformat(),
            },
            f,
            indent=2,
        )
    logger.info(f"Saved snapshot to {snapshot_file}")

    for term, results in batch.results_by_term.items():
        significant = sum(r.is_significant for r in results)
        typer.echo(f"{term}: {len(results)} TFs, {significant} with FDR <= {SIGNIFICANCE_FDR}")
    typer.echo(f"✅ Analysis completed successfully! Results saved to {output_dir}")


if __name__ == "__main__":
    app()
