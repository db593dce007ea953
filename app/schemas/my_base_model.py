import logging
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class CustomBaseModel(BaseModel):
    """Custom base model for response schemas.
    - pre-process the data before init
    - fall back to the field default if a simple value can't be coerced
    """

    def __init__(self, **data: Any) -> None:
        for attr, value in data.items():
            field = None
            me = self.__class__
            while field is None and me is not CustomBaseModel:
                field = me.model_fields.get(attr)
                if field is None:
                    if me.__base__ is None:
                        break
                    me = me.__base__

            if field is None or value is None:
                continue
            attr_type = field.annotation
            # process simple type
            if attr_type in (int, float, str, bool):
                try:
                    data[attr] = attr_type(value)
                except (TypeError, ValueError):
                    logger.warning("Invalid value for key %s, using default", attr)
                    data[attr] = field.get_default(call_default_factory=True)
        super().__init__(**data)


class Message(CustomBaseModel):
    message: str = ""
    status_code: int = 200
