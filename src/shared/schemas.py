from typing import Any, ClassVar, Tuple
from pydantic import BaseModel, model_validator


class PartialUpdate(BaseModel):
    """PATCH payload. Omitted fields are left alone; ``required_fields`` may not be cleared."""

    required_fields: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def _reject_cleared(cls, data: Any) -> Any:
        if isinstance(data, dict):
            cleared = [field for field in cls.required_fields if field in data and data[field] is None]
            if cleared:
                raise ValueError(f"{', '.join(cleared)} cannot be null")
        return data
