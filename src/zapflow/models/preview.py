"""
Link preview cache models.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class PreviewStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class LinkPreview(BaseModel):
    url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None


class LinkPreviewEntry(BaseModel):
    status: PreviewStatus
    data: Optional[LinkPreview] = None
