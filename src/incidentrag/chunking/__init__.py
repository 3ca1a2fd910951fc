"""Section-aware chunking."""

from .service import ChunkingConfig, SectionChunker, TextChunk, chunk_text, split_sections

__all__ = ["ChunkingConfig", "SectionChunker", "TextChunk", "chunk_text", "split_sections"]
