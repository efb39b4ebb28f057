from pydantic import BaseModel
from typing import Optional

class Airport(BaseModel):
    icao: str
    lat: str
    lng: str
    elevation: Optional[str] = None
