from pydantic import BaseModel
from typing import Optional


class ErrorPageContext(BaseModel):
    """Values rendered into templates/page.html for a single error response"""
    title: str
    message: Optional[str] = None
