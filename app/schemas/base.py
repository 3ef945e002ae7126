# app/schemas/base.py
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def none_as_empty_list(value: Any) -> Any:
    """
    BaseQL returns `null` for empty linked-record fields; treat it as [].
    """
    return [] if value is None else value


class CamelModel(BaseModel):
    """
    snake_case in Python, camelCase on the wire (both accepted on input).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class AirtableRecord(CamelModel):
    """
    Base class for records coming back from the BaseQL proxy. Unknown
    columns are ignored so schema additions in Airtable do not break parsing.
    """

    model_config = ConfigDict(extra="ignore")
