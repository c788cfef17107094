"""
FHIR resource models for record match messages.

Only the resources exchanged with record matching systems are modelled in
detail: MessageHeader, Parameters and Composition. A bundle entry without a
resource is a bare search result. Any other resource is decoded as an
OtherResource, which keeps its fields so stored copies round-trip unchanged.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag
from pydantic.alias_generators import to_camel


class FHIRModel(BaseModel):
    """Base for FHIR elements: camelCase on the wire, unknown fields kept."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_json(self) -> dict[str, Any]:
        """Serialize to a FHIR JSON dict."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Coding(FHIRModel):
    system: str | None = None
    code: str | None = None
    display: str | None = None


class Reference(FHIRModel):
    reference: str | None = None
    display: str | None = None


class Extension(FHIRModel):
    url: str
    value_code: str | None = None
    value_string: str | None = None


class MessageSource(FHIRModel):
    name: str | None = None
    endpoint: str | None = None


class MessageDestination(FHIRModel):
    name: str | None = None
    endpoint: str | None = None


class MessageResponse(FHIRModel):
    """The in-response-to component of a MessageHeader."""

    identifier: str | None = None
    code: str | None = None


class MessageHeader(FHIRModel):
    resource_type: Literal["MessageHeader"] = "MessageHeader"
    id: str | None = None
    timestamp: datetime | None = None
    event: Coding | None = None
    response: MessageResponse | None = None
    source: MessageSource | None = None
    destination: list[MessageDestination] = Field(default_factory=list)
    data: list[Reference] = Field(default_factory=list)


class ParametersParameter(FHIRModel):
    name: str
    value_string: str | None = None
    resource: "Resource | None" = None


class Parameters(FHIRModel):
    resource_type: Literal["Parameters"] = "Parameters"
    id: str | None = None
    parameter: list[ParametersParameter] = Field(default_factory=list)

    def get(self, name: str) -> ParametersParameter | None:
        """Return the first parameter with the given name."""
        return next((p for p in self.parameter if p.name == name), None)


class Composition(FHIRModel):
    resource_type: Literal["Composition"] = "Composition"
    id: str | None = None
    status: str | None = None
    title: str | None = None


class OtherResource(FHIRModel):
    """Any resource type this service does not interpret."""

    resource_type: str
    id: str | None = None


_MODELLED_RESOURCE_TYPES = {"MessageHeader", "Parameters", "Composition"}


def _resource_tag(value: Any) -> str:
    """Pick the union member from the resourceType of raw or parsed input."""
    if isinstance(value, dict):
        resource_type = value.get("resourceType", value.get("resource_type"))
    else:
        resource_type = getattr(value, "resource_type", None)
    if resource_type in _MODELLED_RESOURCE_TYPES:
        return str(resource_type)
    return "other"


Resource = Annotated[
    Union[
        Annotated[MessageHeader, Tag("MessageHeader")],
        Annotated[Parameters, Tag("Parameters")],
        Annotated[Composition, Tag("Composition")],
        Annotated[OtherResource, Tag("other")],
    ],
    Discriminator(_resource_tag),
]


class BundleLink(FHIRModel):
    relation: str = ""
    url: str = ""


class BundleEntrySearch(FHIRModel):
    mode: str | None = None
    score: float | None = None
    extension: list[Extension] = Field(default_factory=list)


class BundleEntry(FHIRModel):
    full_url: str | None = None
    link: list[BundleLink] = Field(default_factory=list)
    resource: Resource | None = None
    search: BundleEntrySearch | None = None

    def related_links(self) -> list[BundleLink]:
        """Links whose relation is "related" (case-insensitive)."""
        return [link for link in self.link if link.relation.lower() == "related"]


class Bundle(FHIRModel):
    resource_type: Literal["Bundle"] = "Bundle"
    id: str | None = None
    type: str | None = None
    timestamp: datetime | None = None
    entry: list[BundleEntry] = Field(default_factory=list)

    @property
    def message_header(self) -> MessageHeader | None:
        """The MessageHeader in the first entry, if this is a message."""
        if not self.entry:
            return None
        resource = self.entry[0].resource
        return resource if isinstance(resource, MessageHeader) else None


ParametersParameter.model_rebuild()
Parameters.model_rebuild()
BundleEntry.model_rebuild()
Bundle.model_rebuild()
