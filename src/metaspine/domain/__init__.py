"""Bundled domain models: aspect unions and typed URNs for common entities."""

from metaspine.domain.dataset import (
    DATASET_ASPECTS,
    CorpUserUrn,
    DatasetProperties,
    DatasetUrn,
    Owner,
    Ownership,
    Status,
)

__all__ = [
    "DATASET_ASPECTS",
    "CorpUserUrn",
    "DatasetProperties",
    "DatasetUrn",
    "Owner",
    "Ownership",
    "Status",
]
