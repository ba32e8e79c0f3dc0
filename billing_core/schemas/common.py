"""Shared schema base for the backend's camelCase JSON contract"""

from decimal import Decimal
from typing import Annotated, Union

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel


def _json_number(value: Decimal) -> Union[int, float]:
    # The backend contract carries plain JSON numbers, not strings
    if value == value.to_integral_value():
        return int(value)
    return float(value)


Money = Annotated[Decimal, PlainSerializer(_json_number, return_type=Union[int, float], when_used="json")]


class CamelModel(BaseModel):
    """Accepts camelCase or snake_case input; serializes with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict:
        """JSON-ready dict in the backend's field naming"""
        return self.model_dump(mode="json", by_alias=True)


class FrozenCamelModel(CamelModel):
    """Read-only snapshot"""

    model_config = ConfigDict(frozen=True)
