"""
Ingestion — PDF text extraction, chunking, embedding and upsert.

This module is responsible for the pipeline that converts a directory of
policy PDFs into embedded chunks stored in a vector-store collection.
"""
