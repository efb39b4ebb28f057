from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

class Pirep(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    report: str = Field(alias="Report")
    lat: Optional[str] = Field(default=None, alias="Lat")
    lng: Optional[str] = Field(default=None, alias="Lng")
    station: Optional[str] = Field(default=None, alias="Station")

class UpdateMessage(BaseModel):
    """One decoded message from the streaming feed."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = Field(alias="Type")
    location: str = Field(default="", alias="Location")
    time: str = Field(default="", alias="Time")
    data: str = Field(default="", alias="Data")
