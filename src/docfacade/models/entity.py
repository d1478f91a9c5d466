"""
Base entity model.

Entities handled by Doc Facade are plain pydantic models. DocumentEntity is
a convenience base that carries the document id; markers work on any
pydantic model with an ``id`` attribute.
"""

from pydantic import BaseModel, ConfigDict


class DocumentEntity(BaseModel):
    """
    Base class for documents stored through Doc Facade.

    The ``id`` is assigned by the application or by the store adapter on
    first insert.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str | None = None
