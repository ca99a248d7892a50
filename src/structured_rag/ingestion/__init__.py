"""
Ingestion — document extraction, chunking, and embedding into the vector store.

This module is responsible for the pipeline that converts raw uploads
(TXT, CSV, JSON, PDF, DOCX, XLSX) into embedded chunks stored in a
per-user namespace of the vector store.
"""
