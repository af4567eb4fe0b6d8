"""DocumentPieceMatcher — correlates uploaded documents with required pieces.

Documents have been tagged two ways over time: older uploads only carry a
coarse ``type_document_id``; newer ones carry the precise
``piece_justification_id``.  A document's vintage is not known in advance,
so matching runs an ordered list of resolver strategies and keeps the
result of the first one that matches anything:

  1. PieceJustificationResolver — ``piece_justification_id == piece.piece_id``
  2. TypeDocumentResolver       — ``type_document_id == piece.piece_id``

A piece is *satisfied* when at least one matched document is validated.
Additional strategies can be appended without touching the matching loop.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Sequence

from suivi_engine.models.circuit import Document, Piece
from suivi_engine.models.progress import PieceMatch


class PieceResolver(ABC):
    """A strategy selecting the documents that correlate with a piece."""

    name: str = "resolver"

    @abstractmethod
    def resolve(self, piece: Piece, documents: Sequence[Document]) -> list[Document]:
        """Return the documents correlating with ``piece`` (possibly empty)."""
        ...


class PieceJustificationResolver(PieceResolver):
    name = "piece_justification"

    def resolve(self, piece: Piece, documents: Sequence[Document]) -> list[Document]:
        return [d for d in documents if d.piece_justification_id == piece.piece_id]


class TypeDocumentResolver(PieceResolver):
    name = "type_document"

    def resolve(self, piece: Piece, documents: Sequence[Document]) -> list[Document]:
        return [d for d in documents if d.type_document_id == piece.piece_id]


DEFAULT_RESOLVERS: tuple[PieceResolver, ...] = (
    PieceJustificationResolver(),
    TypeDocumentResolver(),
)


def filter_documents_for_dossier(
    documents: Iterable[Document], dossier_id: str
) -> list[Document]:
    """Keep only the documents owned by ``dossier_id``.

    Documents fetched from a shared collection may belong to other
    dossiers; documents without an owner are excluded as well.
    """
    return [d for d in documents if d.documentable_id == dossier_id]


class DocumentPieceMatcher:
    """Resolves which documents satisfy a piece, trying resolvers in order.

    Args:
        resolvers: ordered strategies; defaults to piece-justification id
            first, then type-document id
    """

    def __init__(self, resolvers: Sequence[PieceResolver] | None = None) -> None:
        self._resolvers = tuple(resolvers) if resolvers is not None else DEFAULT_RESOLVERS

    @property
    def resolvers(self) -> tuple[PieceResolver, ...]:
        return self._resolvers

    def match(self, piece: Piece, documents: Sequence[Document]) -> PieceMatch:
        """Match ``piece`` against a dossier's (already filtered) documents."""
        for resolver in self._resolvers:
            matched = resolver.resolve(piece, documents)
            if matched:
                return PieceMatch(
                    piece_id=piece.piece_id,
                    documents=matched,
                    resolver=resolver.name,
                    satisfied=any(d.valide for d in matched),
                )
        return PieceMatch(piece_id=piece.piece_id)

    def is_satisfied(self, piece: Piece, documents: Sequence[Document]) -> bool:
        return self.match(piece, documents).satisfied
