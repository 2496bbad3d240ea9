"""
Statement Importer: bank statement ingestion pipeline.

Reads bank statement exports with unknown column names and converts every
row into a canonical transaction record.  Bad rows are reported and
skipped; they never abort the batch.  Accepted records are handed to a
caller-supplied sink in a single batch write.
"""

__version__ = "1.0.0"
__author__ = "Statement Importer Team"

from statement_importer.pipeline import ImportPipeline  # noqa: F401
