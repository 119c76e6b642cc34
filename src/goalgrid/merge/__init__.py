"""Merging an anonymous local draft into an account."""

from .models import ExistingCardSummary, KeepExisting, Replace, Resolution, SaveAsNew
from .resolver import MergeResolver

__all__ = [
    "ExistingCardSummary",
    "KeepExisting",
    "MergeResolver",
    "Replace",
    "Resolution",
    "SaveAsNew",
]
