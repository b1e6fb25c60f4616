"""File ingestion: tabular or KML uploads turned into project layers."""

from mapper.upload.wizard import UploadOutcome, UploadWizard

__all__ = ["UploadOutcome", "UploadWizard"]
