import math

from pydantic import BaseModel, ConfigDict, Field, field_serializer

SHORTS_URL = "https://www.youtube.com/shorts/{video_id}"


class NormalizedVideo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_id: str = Field(alias="videoId", min_length=1)
    title: str = ""
    views: int = Field(default=0, ge=0)
    duration_seconds: int = Field(default=0, alias="durationSeconds", ge=0)
    published_raw: str = Field(default="", alias="publishedRaw")
    # math.inf means the recency text could not be parsed.
    age_hours: float = Field(default=math.inf, alias="ageHours", ge=0)
    channel: str = ""
    thumbnail_url: str | None = Field(default=None, alias="thumbnailUrl")
    region: str = "US"
    url: str = ""

    @property
    def age_known(self) -> bool:
        return not math.isinf(self.age_hours)

    @field_serializer("age_hours")
    def serialize_age_hours(self, value: float) -> float | None:
        return None if math.isinf(value) else round(value, 2)

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True)
