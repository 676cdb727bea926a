from typing import Optional

from pydantic import BaseModel, Field


class KeyBatchCreate(BaseModel):
    quantity: int = Field(ge=1)
    gameVersion: Optional[str] = Field(default=None, max_length=30)

