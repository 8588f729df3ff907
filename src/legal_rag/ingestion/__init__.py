"""
Ingestion — PDF loading, chunking, embedding and indexing.

This package converts a directory of PDFs into embedded chunks stored in
the vector index.  :class:`~legal_rag.ingestion.pipeline.IngestionPipeline`
is the entry point; the CLI lives in the same module.
"""
