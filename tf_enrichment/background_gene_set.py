import logging
from pathlib import Path
from typing import Set

logger = logging.getLogger(__name__)

MISSING_UNIVERSE_MESSAGE = (
    "Required reference gene list is missing: {path} "
    "(one gene ID per line, e.g. Araport11 AT IDs)."
)


class BackgroundGeneSet:
    """
    The gene universe enrichment is measured against.
    """

    def __init__(self, background_file_path: str, name: str = "") -> None:
        """
        Initialize the universe from a file with one gene ID per line.

        Args:
            background_file_path: Path to the background file
            name: Name for the background, the file stem when empty

        Raises:
            FileNotFoundError: If the background file does not exist
        """
        self.genes: Set[str] = self._load_from_file(background_file_path)
        self.size: int = len(self.genes)
        self.name = name if name else Path(background_file_path).stem

    @staticmethod
    def _load_from_file(background_file_path: str) -> Set[str]:
        """
        Load uppercased gene IDs, skipping blank lines.

        Args:
            background_file_path: Path to the background file

        Returns:
            Set of gene IDs
        """
        path = Path(background_file_path)
        if not path.is_file():
            logger.error(MISSING_UNIVERSE_MESSAGE.format(path=path))
            raise FileNotFoundError(MISSING_UNIVERSE_MESSAGE.format(path=path))

        with open(path, "r") as f:
            genes = {line.strip().upper() for line in f if line.strip()}

        logger.info(f"Loaded {len(genes)} background genes from {path}")
        return genes

    def has_gene(self, gene: str) -> bool:
        """
        Check if the given gene is present in the background.

        Args:
            gene: A gene ID, any case.

        Returns:
            True if the gene is present, False otherwise.
        """
        return gene.upper() in self.genes
