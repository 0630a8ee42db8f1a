from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base for every DTO that crosses the wire.

    Fields are declared in snake_case and serialized in camelCase
    (``conversation_id`` <-> ``conversationId``), the format the web and
    mobile clients already speak. Input accepts either spelling.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict:
        """JSON-ready dict using the camelCase aliases."""
        return self.model_dump(mode="json", by_alias=True)
