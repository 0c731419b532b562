"""
RAG (Retrieval Augmented Generation) module for the Acolyt bot.

Selects the training notes most relevant to a user message and keeps the
note embeddings fresh.

Components:
    - chunker: Splits the note log into blank-line separated chunks
    - chunk_store: Note log and chunk-embedding file, in-memory chunk snapshot
    - embedder: Embeds text via the OpenAI embeddings API
    - ranker: Cosine similarity ranking of chunks against a query
    - retriever: Query-time retrieval and bounded context assembly
    - refresh: Single-flight periodic re-embedding of the note log
"""
