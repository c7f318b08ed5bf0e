"""
omnirag: local document indexing, retrieval and LLM routing

Turns text files, PDFs and images (via OCR) into line-level chunks, finds
chunks relevant to a question, and sends the question with that context to
either a cloud (OpenAI) or a local (Ollama) language model.

Key Components:
    - retrieval: Extraction, chunking, the SQLite chunk store and search
    - llm: Provider clients and remote/local routing
    - library: Projects and global sources used as standing context
    - chat: Sessions and the conversation service
    - tasks: Overview, notebook, exam and timeline generation
    - api: FastAPI REST endpoints

Example:
    >>> from omnirag.services import build_services
    >>> services = build_services()
    >>> services.indexer.index_paths([Path("notes.md")])
    >>> services.retriever.search("budget", scope=[...])
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
