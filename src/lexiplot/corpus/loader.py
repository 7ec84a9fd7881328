"""
Corpus Loader
=============

Holds raw documents together with their document-level metadata
(``Year``, ``President``, ``Party`` and so on) and turns them into token
sequences for the feature matrix builder and the dispersion plots.

Documents are immutable once ingested. Every operation that narrows or
reshapes the corpus returns a new ``Corpus``; nothing is edited in place.

Tokenization:
    Text is split with an NLTK ``RegexpTokenizer``. Word tokens keep
    internal apostrophes (``don't``, ``nation's``), and runs of punctuation
    are emitted as their own tokens so that they can be filtered out later.
    A token counts as punctuation when it contains no alphanumeric
    character.

Stopwords:
    ``remove_stopwords=True`` selects NLTK's English stopword list, which
    requires the ``stopwords`` corpus to be downloaded
    (``nltk.download("stopwords")``). A list, set or tuple is used as given.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from nltk.tokenize import RegexpTokenizer

from ..errors import EmptyResultError, InvalidGroupError

logger = logging.getLogger(__name__)

TOKEN_PATTERN = r"\w+(?:['’]\w+)*|[^\w\s]+"

_tokenizer = RegexpTokenizer(TOKEN_PATTERN)

StopwordSpec = Union[bool, Iterable[str]]


# ---------------------------------------------------------------------------
# Tokenization utilities
# ---------------------------------------------------------------------------

def is_punct(token: str) -> bool:
    """True when the token carries no letter or digit."""
    return not any(ch.isalnum() for ch in token)


def word_tokenize(text: str, lowercase: bool = True) -> list[str]:
    """Split text into word and punctuation tokens."""
    if lowercase:
        text = text.lower()
    return _tokenizer.tokenize(text)


def resolve_stopwords(remove_stopwords: StopwordSpec) -> frozenset[str]:
    """
    Turn a ``remove_stopwords`` setting into a lowercase lookup set.

    ``False`` gives an empty set, ``True`` the NLTK English list, and any
    iterable of strings is used verbatim.
    """
    if remove_stopwords is False or remove_stopwords is None:
        return frozenset()
    if remove_stopwords is True:
        from nltk.corpus import stopwords
        try:
            words = stopwords.words("english")
        except LookupError:
            raise LookupError(
                "The NLTK stopword list is not installed. "
                "Install with: python -m nltk.downloader stopwords"
            ) from None
        return frozenset(w.lower() for w in words)
    if isinstance(remove_stopwords, str):
        raise TypeError("remove_stopwords must be a bool or a collection of words, not a string")
    return frozenset(w.lower() for w in remove_stopwords)


def filter_tokens(
    tokens: Iterable[str],
    stopwords: frozenset[str] = frozenset(),
    remove_punct: bool = False,
) -> list[str]:
    """Drop stopwords and (optionally) punctuation tokens."""
    kept = []
    for tok in tokens:
        if remove_punct and is_punct(tok):
            continue
        if stopwords and tok.lower() in stopwords:
            continue
        kept.append(tok)
    return kept


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Document:
    """A single text with its document-level variables."""
    docname: str
    text: str
    meta: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze a private copy so later edits to the caller's dict are not seen
        object.__setattr__(self, "meta", MappingProxyType(dict(self.meta)))

    def tokens(self, lowercase: bool = True) -> list[str]:
        return word_tokenize(self.text, lowercase=lowercase)


class Corpus:
    """
    An ordered collection of documents with unique names.

    Usage::

        corpus = Corpus.from_json("data/inaugural.json", docname_field="name")
        recent = corpus.subset(lambda d: d.meta["Year"] > 1949)
        toks = recent.tokens(remove_punct=True)
    """

    def __init__(self, documents: Iterable[Document]):
        self.documents: tuple[Document, ...] = tuple(documents)
        self._by_name: dict[str, Document] = {}
        for doc in self.documents:
            if doc.docname in self._by_name:
                raise ValueError(f"Duplicate document name: {doc.docname!r}")
            self._by_name[doc.docname] = doc

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self):
        return iter(self.documents)

    def __getitem__(self, docname: str) -> Document:
        try:
            return self._by_name[docname]
        except KeyError:
            raise InvalidGroupError(f"No document named {docname!r}") from None

    @property
    def docnames(self) -> list[str]:
        return [d.docname for d in self.documents]

    @property
    def metadata_keys(self) -> list[str]:
        """Metadata variables present on every document, first-seen order."""
        if not self.documents:
            return []
        keys = list(self.documents[0].meta)
        return [k for k in keys if all(k in d.meta for d in self.documents)]

    def docvar(self, name: str) -> list[Any]:
        """Values of a metadata variable, one per document."""
        missing = [d.docname for d in self.documents if name not in d.meta]
        if missing:
            raise InvalidGroupError(
                f"Metadata variable {name!r} missing for {len(missing)} document(s), "
                f"e.g. {missing[0]!r}"
            )
        return [d.meta[name] for d in self.documents]

    def subset(
        self,
        predicate: Optional[Callable[[Document], bool]] = None,
        **criteria: Any,
    ) -> Corpus:
        """
        Keep the documents matching every criterion.

        Keyword criteria compare metadata values for equality; the optional
        predicate receives each ``Document``.
        """
        for key in criteria:
            self.docvar(key)

        kept = [
            d for d in self.documents
            if all(d.meta[k] == v for k, v in criteria.items())
            and (predicate is None or predicate(d))
        ]
        if not kept:
            raise EmptyResultError("Corpus subset selected no documents")

        logger.debug(f"Subset kept {len(kept)} of {len(self.documents)} documents")
        return Corpus(kept)

    def tokens(
        self,
        lowercase: bool = True,
        remove_punct: bool = False,
        remove_stopwords: StopwordSpec = False,
    ) -> dict[str, list[str]]:
        """Token lists keyed by document name, in corpus order."""
        stop = resolve_stopwords(remove_stopwords)
        return {
            d.docname: filter_tokens(d.tokens(lowercase=lowercase), stop, remove_punct)
            for d in self.documents
        }

    def summary(self) -> dict:
        """Token and type counts per document."""
        per_doc = {}
        for d in self.documents:
            toks = d.tokens()
            per_doc[d.docname] = {"tokens": len(toks), "types": len(set(toks))}
        return {
            "documents": len(self.documents),
            "total_tokens": sum(v["tokens"] for v in per_doc.values()),
            "metadata_keys": self.metadata_keys,
            "per_document": per_doc,
        }

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, Any]],
        text_field: str = "text",
        docname_field: Optional[str] = None,
    ) -> Corpus:
        """
        Build a corpus from mappings; every field other than the text and
        the name becomes metadata. Unnamed documents get ``text1``,
        ``text2``, ...
        """
        documents = []
        for i, rec in enumerate(records, 1):
            if text_field not in rec:
                raise ValueError(f"Record {i} has no {text_field!r} field")
            if docname_field is not None and docname_field in rec:
                name = str(rec[docname_field])
            else:
                name = f"text{i}"
            meta = {k: v for k, v in rec.items() if k not in (text_field, docname_field)}
            documents.append(Document(docname=name, text=rec[text_field], meta=meta))
        return cls(documents)

    @classmethod
    def from_json(
        cls,
        path: str | Path,
        text_field: str = "text",
        docname_field: Optional[str] = "docname",
    ) -> Corpus:
        """
        Load a corpus from a JSON file.

        Expected format (a bare list of records is accepted too)::

            {
                "documents": [
                    {"docname": "1789-Washington", "text": "...",
                     "Year": 1789, "President": "Washington"},
                    ...
                ]
            }
        """
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        records = data["documents"] if isinstance(data, dict) else data
        corpus = cls.from_records(records, text_field=text_field, docname_field=docname_field)
        logger.info(f"Loaded {len(corpus)} documents from {path}")
        return corpus

    @classmethod
    def from_text_files(cls, directory: str | Path, pattern: str = "*.txt") -> Corpus:
        """
        Load every matching text file in a directory, sorted by name.

        The file stem becomes the document name. Stems shaped like
        ``1861-Lincoln`` also yield ``Year`` and ``President`` metadata.
        """
        directory = Path(directory)
        documents = []

        for filepath in sorted(directory.glob(pattern)):
            text = filepath.read_text(encoding="utf-8").strip()
            if not text:
                logger.warning(f"Empty text file {filepath.name}, skipping")
                continue
            documents.append(Document(
                docname=filepath.stem,
                text=text,
                meta=_meta_from_stem(filepath.stem),
            ))

        if not documents:
            raise EmptyResultError(f"No text files matching {pattern!r} in {directory}")

        logger.info(f"Loaded {len(documents)} text files from {directory}")
        return cls(documents)


def _meta_from_stem(stem: str) -> dict[str, Any]:
    head, _, tail = stem.partition("-")
    if head.isdigit() and tail:
        return {"Year": int(head), "President": tail}
    return {}
