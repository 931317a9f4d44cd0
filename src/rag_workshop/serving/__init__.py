"""
Serving — FastAPI application exposing the chat and retrieval services.
"""
