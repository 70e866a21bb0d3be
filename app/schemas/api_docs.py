"""
OpenAPI metadata for the landing page API.
"""

from typing import Any, Dict, List
from pydantic import BaseModel

API_TITLE = "hello API"
API_VERSION = "1.1.1"
API_DESCRIPTION = "a simple API"

DOCS_URL = "/api-docs"
OPENAPI_URL = "/api-docs/openapi.json"

OPENAPI_TAGS = [
    {"name": "hello", "description": "hello endpoint"},
]


class ApiDocs(BaseModel):
    """Metadata handed to FastAPI when the app is composed"""
    title: str
    version: str
    description: str
    openapi_tags: List[Dict[str, Any]]
    openapi_url: str
    docs_url: str


def build_api_docs() -> ApiDocs:
    return ApiDocs(
        title=API_TITLE,
        version=API_VERSION,
        description=API_DESCRIPTION,
        openapi_tags=OPENAPI_TAGS,
        openapi_url=OPENAPI_URL,
        docs_url=DOCS_URL,
    )
