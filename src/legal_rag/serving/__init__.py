"""
Serving — query service and FastAPI application.

The web layer only calls :class:`~legal_rag.serving.service.QueryService`,
which runs retrieval and answer composition and always returns an answer.
"""
