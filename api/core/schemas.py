"""
Base model for request/response bodies.

Attributes stay snake_case in Python; JSON uses camelCase aliases. Input is
accepted in either spelling.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
