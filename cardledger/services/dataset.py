"""
Bundled dataset loader.

Reads the catalogue artifact shipped with the app (a JSON document in the
`CatalogueDataset` shape) into memory for the reconciler.
"""

from pathlib import Path

from cardledger.models.dataset import CatalogueDataset


def load_dataset(path: Path) -> CatalogueDataset:
    """
    Load a bundled catalogue dataset.

    Args:
        path: Path to the JSON artifact

    Returns:
        The validated dataset.

    Raises:
        FileNotFoundError: If the artifact doesn't exist
        pydantic.ValidationError: If the artifact doesn't match the dataset shape
    """
    if not path.exists():
        raise FileNotFoundError(f"Catalogue dataset not found at {path}")

    with open(path, encoding="utf-8") as f:
        return CatalogueDataset.model_validate_json(f.read())
