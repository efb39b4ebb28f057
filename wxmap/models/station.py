from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

class StationReport(BaseModel):
    """Merged per-station record; serialized with the snapshot field names."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="Location")
    lat: Optional[float] = Field(default=None, alias="Lat")
    lng: Optional[float] = Field(default=None, alias="Lng")
    time: str = Field(default="", alias="Time")
    metar: str = Field(default="", alias="Metar")
    category: str = Field(default="", alias="Cond")
    pirep: str = Field(default="", alias="Pirep")
    taf: str = Field(default="", alias="TAF")
    winds: str = Field(default="", alias="Winds")
    last_updated: Optional[datetime] = Field(default=None, alias="Updated")

class ParsedMetar(BaseModel):
    wind_dir: int = 0
    wind_speed: int = 0
    wind_gust: int = 0
    category: str = ""
    color: str = "white"
    precip: str = ""
    temperature: str = ""
    lightning: bool = False
