"""
Ingestion — document loading, chunking, and embedding into the vector store.

This package is responsible for the pipeline that converts raw documents
(plain text, Markdown, PDF) into embedded chunks stored in a vector
store: read -> split -> embed-and-store.
"""
