"""
Pydantic models for the remote backend API.

Field names follow the backend's JSON (snake_case, Mongo-style ``_id``).
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UserProfile(BaseModel):
    gender: Optional[str] = None
    age: Optional[int] = None
    timezone: Optional[str] = None


class APIUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    email: str
    status: str = "active"
    profile: Optional[UserProfile] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AuthResponse(BaseModel):
    token: str
    user: APIUser


class PanelPromptsResponse(BaseModel):
    """Response of the panel planning endpoint."""
    panel_prompts: List[str] = Field(default_factory=list)


class ImageRenderResponse(BaseModel):
    """Response of the render endpoint; image_url is usually a base64 data URL."""
    image_url: str


class UploadResponse(BaseModel):
    url: str


class PanelStructureEntry(BaseModel):
    panel: int
    storyPart: Optional[str] = None
    prompt: Optional[str] = None


class PanelStructure(BaseModel):
    panelCount: int
    panels: Optional[List[PanelStructureEntry]] = None


class APIVisualization(BaseModel):
    """Visualization record created after panels are uploaded."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    rewritten_dream_id: str
    visualization_type: str
    panel_structure: Optional[PanelStructure] = None
    image_assets: Optional[List[str]] = None
    status: str
    created_at: Optional[str] = None
