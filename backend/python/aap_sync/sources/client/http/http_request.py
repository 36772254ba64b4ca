from typing import Any, Dict, Optional

from pydantic import BaseModel, Field  # type: ignore


class HTTPRequest(BaseModel):
    """HTTP request
    Args:
        url: The URL of the request
        method: The HTTP method to use
        headers: The headers to send with the request
        body: The body of the request, sent as JSON or as a form depending on Content-Type
        query_params: The query parameters to use
    """
    url: str = Field(alias="uri")
    method: str = Field(default="GET")
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None
    query_params: Dict[str, Any] = Field(default_factory=dict, alias="query")

    model_config = {"populate_by_name": True}
