"""Code Graph - code knowledge-graph indexing and hybrid retrieval.

Turns multi-language repositories into:
- Symbols and dependency edges (tree-sitter)
- A persisted dependency graph with traversal
- Embedding, full-text and graph retrieval fused into one ranking
"""

__version__ = "0.1.0"
