import datetime as dt
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_serializer
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WeatherItem(CamelModel):
    id: int
    provider: str
    city: str
    country: str
    latitude: float
    longitude: float
    temperature: float
    feels_like: float
    temp_min: float
    temp_max: float
    humidity: int
    pressure: int
    wind_speed: float
    wind_direction: int
    condition_main: str
    condition_description: str
    condition_icon: str
    timestamp: dt.datetime
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None


class NewsItem(CamelModel):
    id: int
    title: str
    description: str = ""
    content: str
    url: Optional[str] = None
    image_url: Optional[str] = None
    published_at: dt.datetime
    source_name: Optional[str] = None
    author: Optional[str] = None
    provider: str
    created_at: Optional[dt.datetime] = None


class WeatherBranch(CamelModel):
    items: List[WeatherItem] = Field(default_factory=list)
    # Empty when the branch failed
    pagination: Dict[str, Any] = Field(default_factory=dict)


class NewsBranch(CamelModel):
    items: List[NewsItem] = Field(default_factory=list)
    pagination: Dict[str, Any] = Field(default_factory=dict)


class AggregatedData(CamelModel):
    news: NewsBranch
    weather: WeatherBranch
    timestamp: dt.datetime
    error: Optional[str] = None

    @model_serializer(mode="wrap")
    def _drop_empty_error(self, handler):
        # Only present when repository initialization failed
        data = handler(self)
        if self.error is None:
            data.pop("error", None)
        return data


class AggregatedResponse(CamelModel):
    success: bool = True
    data: AggregatedData

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "success": True,
                    "data": {
                        "news": {
                            "items": [],
                            "pagination": {
                                "totalItems": 0,
                                "totalPages": 0,
                                "currentPage": 1,
                                "itemsPerPage": 10,
                                "hasNextPage": False,
                                "hasPreviousPage": False,
                            },
                        },
                        "weather": {"items": [], "pagination": {}},
                        "timestamp": "2024-01-01T00:00:00Z",
                    },
                }
            ]
        },
    )


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: Optional[str] = None
