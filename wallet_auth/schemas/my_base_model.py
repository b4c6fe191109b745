from dataclasses import asdict, is_dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CustomBaseModel(BaseModel):
    """Custom base model for all schemas.
    - JSON field names are camelCase (walletAddress), python names snake_case
    - either form is accepted on input
    - helper to build a schema from a record (dataclass or dict)
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_record(cls, record: Any, **extra: Any):
        if is_dataclass(record) and not isinstance(record, type):
            data = asdict(record)
        elif isinstance(record, dict):
            data = dict(record)
        else:
            raise ValueError(f"Invalid record type: {type(record)}")
        data.update(extra)
        return cls(**data)
