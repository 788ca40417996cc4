"""
Serving — FastAPI application for ingestion and streamed chat.

Run with ``policy-rag-serve`` or ``uvicorn policy_rag.serving.app:app``.
"""
