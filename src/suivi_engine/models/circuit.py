"""Circuit and document models.

A circuit is the ordered list of approval stages a dossier must pass
through.  Each stage lists the justification pieces it requires; a piece
is satisfied by an uploaded document that has been validated.

Field names accept both the portal's French wire names (``libelle``,
``etapes``, ``type_document``, ``documentable_id``...) and camelCase names
so the same models deserialise API payloads and YAML definitions.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Piece(BaseModel):
    """A justification piece required by a stage.

    ``piece_id`` correlates to a document's ``piece_justification_id``
    (or, for older documents, its ``type_document_id``).
    """

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    piece_id: str = Field(
        validation_alias=AliasChoices("piece_id", "pieceId", "type_document"),
    )
    label: str | None = Field(None, validation_alias=AliasChoices("label", "libelle"))


class Stage(BaseModel):
    """One step of a circuit.

    ``pieces`` is ``None`` when the API returned the stage without its piece
    list; an empty list means the stage requires nothing.
    """

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    code: str = ""
    label: str = Field("", validation_alias=AliasChoices("label", "libelle"))
    order: int | None = Field(None, validation_alias=AliasChoices("order", "ordre"))
    pieces: list[Piece] | None = None

    @field_validator("code", "label", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        return "" if value is None else value

    @property
    def required_pieces(self) -> list[Piece]:
        return self.pieces or []


class Circuit(BaseModel):
    """An approval circuit, resolved per request type (``entity_name``)."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: str | None = None
    label: str = Field("", validation_alias=AliasChoices("label", "libelle"))
    entity_name: str = Field(
        "", validation_alias=AliasChoices("entity_name", "entityName", "nom_entite"),
    )
    active: bool = Field(True, validation_alias=AliasChoices("active", "actif"))
    stages: list[Stage] | None = Field(
        None, validation_alias=AliasChoices("stages", "etapes"),
    )

    @field_validator("label", "entity_name", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        return "" if value is None else value

    @property
    def needs_stage_backfill(self) -> bool:
        """True when the record carries an id but no stage list."""
        return self.id is not None and not self.stages


class Document(BaseModel):
    """An uploaded document attached to a dossier."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    piece_justification_id: str | None = Field(
        None,
        validation_alias=AliasChoices("piece_justification_id", "pieceJustificationId"),
    )
    type_document_id: str | None = Field(
        None, validation_alias=AliasChoices("type_document_id", "typeDocumentId"),
    )
    # Owning dossier id
    documentable_id: str | None = Field(
        None, validation_alias=AliasChoices("documentable_id", "documentableId"),
    )
    valide: bool = False
    validated_comment: str | None = Field(
        None,
        validation_alias=AliasChoices("validated_comment", "validatedComment", "commentaires"),
    )


def order_stages(stages: list[Stage]) -> list[Stage]:
    """Sort stages by ``order`` when present, otherwise by ``code``.

    Stages carrying an explicit order come first, in ascending order;
    stages without one follow, sorted by code.
    """
    return sorted(
        stages,
        key=lambda s: (0, s.order, "") if s.order is not None else (1, 0, s.code),
    )
