"""Corpus storage and tokenization."""

from .loader import Corpus, Document, word_tokenize, resolve_stopwords

__all__ = [
    "Corpus",
    "Document",
    "word_tokenize",
    "resolve_stopwords",
]
