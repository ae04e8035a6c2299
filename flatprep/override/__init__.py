"""Prebuilt module overrides staged in place of upstream sources."""

from .stager import SourceOverrideStager, StagingLayout, inspect_artifact, select_entry

__all__ = ["SourceOverrideStager", "StagingLayout", "inspect_artifact", "select_entry"]
