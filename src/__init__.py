"""
notesearch - search engine for markdown note vaults.

Indexes a folder of notes in memory and answers structured queries: free-text
terms, quoted phrases, boolean expressions, typo-tolerant matching and
metadata filters, exposed to AI agents as MCP tools.

Stack:
- Python + FastMCP
- In-memory inverted index
- YAML frontmatter (PyYAML)
- Markdown (source of truth)
"""

__version__ = "0.1.0"
__author__ = "macward"
