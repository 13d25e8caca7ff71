"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Document models for the inferred Swagger 2.0 description.

Schema fragments stay plain dictionaries because they are produced and merged
recursively; everything above them is a pydantic model so the document has a
fixed shape and a single serialisation path.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

SWAGGER_VERSION = "2.0"

SchemaFragment = Dict[str, Any]


class DocumentModel(BaseModel):
    """Base model for document nodes."""

    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Info(DocumentModel):
    """The `info` block, seeded from project metadata."""

    title: str = "API"
    description: str = ""
    version: str = "1.0.0"


class Parameter(DocumentModel):
    """A single operation parameter, unique per operation by (name, in)."""

    name: str
    in_: str = Field(alias="in")
    type: Optional[str] = None
    schema_: Optional[SchemaFragment] = Field(default=None, alias="schema")
    items: Optional[SchemaFragment] = None
    collectionFormat: Optional[str] = None
    required: bool = False
    example: Optional[Any] = None

    @property
    def key(self) -> tuple:
        return (self.name, self.in_)


class Response(DocumentModel):
    description: str = ""
    schema_: Optional[SchemaFragment] = Field(default=None, alias="schema")


class Operation(DocumentModel):
    """Documented behaviour of one (template, method) pair."""

    summary: Optional[str] = None
    consumes: Optional[List[str]] = None
    produces: Optional[List[str]] = None
    parameters: List[Parameter] = Field(default_factory=list)
    responses: Dict[str, Response] = Field(default_factory=dict)
    security: Optional[List[Dict[str, List[str]]]] = None

    def security_names(self) -> List[str]:
        return [next(iter(requirement)) for requirement in self.security or []]


class SecurityScheme(DocumentModel):
    type: str = "apiKey"
    name: str
    in_: str = Field(default="header", alias="in")


class SpecDocument(DocumentModel):
    """The whole Swagger document for one initialized server."""

    swagger: str = SWAGGER_VERSION
    info: Info = Field(default_factory=Info)
    host: Optional[str] = None
    basePath: Optional[str] = None
    schemes: List[str] = Field(default_factory=list)
    paths: Dict[str, Dict[str, Operation]] = Field(default_factory=dict)
    securityDefinitions: Dict[str, SecurityScheme] = Field(default_factory=dict)
