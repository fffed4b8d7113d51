"""
HTTP Output Models
==================

Pydantic models for the JSON payloads served by the kiosk.

Output Contract (GET /face):
    {
        "studentname": "Amy",
        "counselorname": "Wink",
        "counselorimage": "wink.jpg"
    }
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class FaceLookup(BaseModel):
    """
    Result of a one-shot face lookup.

    Field names are the wire names the kiosk front-end reads.

    Attributes:
        studentname: Recognized name, or the unknown caption
        counselorname: Presentation profile name
        counselorimage: Presentation profile image file
    """

    studentname: str = Field(..., description="Recognized name or unknown caption")
    counselorname: str = Field(..., description="Assigned counselor profile name")
    counselorimage: str = Field(..., description="Counselor profile image file")

    class Config:
        """Pydantic model configuration."""

        json_schema_extra = {
            "example": {
                "studentname": "Amy",
                "counselorname": "Wink",
                "counselorimage": "wink.jpg",
            }
        }


class DetectionPayload(BaseModel):
    """Single detection as pushed on /ws/detections."""

    name: str
    caption: str
    identity: str = ""
    region: Optional[dict] = None


class DetectionsMessage(BaseModel):
    """Latest cached recognition result for the running session."""

    session: Optional[str] = Field(None, description="Active session id")
    issued_sequence: int = Field(-1, description="Frame sequence the result was issued for")
    completed_at: float = Field(0.0, description="UNIX time the call completed")
    detections: List[DetectionPayload] = Field(default_factory=list)
