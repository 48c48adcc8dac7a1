from datetime import datetime

from pydantic import BaseModel
from pydantic import Field


class SearchQueryCreate(BaseModel):
    query: str = Field(min_length=1, max_length=255)


class SearchHistoryItem(BaseModel):
    query: str
    searched_at: datetime
