"""Retrieval components."""

from .service import IndexRetriever, RetrievalConfig, Retriever, aggregate

__all__ = ["IndexRetriever", "RetrievalConfig", "Retriever", "aggregate"]
