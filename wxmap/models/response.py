from pydantic import BaseModel, ConfigDict, Field
from typing import NamedTuple

class BoundingBox(NamedTuple):
    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float

    def contains(self, lng: float, lat: float) -> bool:
        # Open interval on both axes; points on the edge are outside.
        return self.min_lng < lng < self.max_lng and self.min_lat < lat < self.max_lat

class WeatherPoint(BaseModel):
    """Per-station row returned by the airports query. Unknown values are empty strings."""
    model_config = ConfigDict(populate_by_name=True)

    lng: str = Field(default="", alias="Lng")
    lat: str = Field(default="", alias="Lat")
    icao: str = Field(alias="ICAO")
    wind_dir: str = Field(default="", alias="WindDir")
    wind_speed: str = Field(default="", alias="WindSpeed")
    wind_barb: str = Field(default="", alias="WindBarb")
    wind_gust: str = Field(default="", alias="WindGust")
    metar: str = Field(default="", alias="Metar")
    cond: str = Field(default="", alias="Cond")
    cond_color: str = Field(default="", alias="CondColor")
    precip: str = Field(default="", alias="Precip")
    temperature: str = Field(default="", alias="Temperature")
    taf: str = Field(default="", alias="TAF")
    up_winds: str = Field(default="", alias="UpWinds")
    lightning: str = Field(default="0", alias="Lightning")
