"""
JSON-serialisable snapshots of buffered Starlette responses.
"""

import base64
from typing import Any, List, Tuple, Union

from pydantic import BaseModel, Field
from starlette.responses import FileResponse, Response, StreamingResponse


class CachedResponse(BaseModel):
    """Status, raw headers and base64 body of a fully buffered response."""

    status_code: int
    headers: List[Tuple[str, str]] = Field(default_factory=list)
    body: str = ""  # base64

    @classmethod
    def capture(cls, response: Response) -> Union["CachedResponse", Response]:
        """Snapshot ``response``; streaming and file responses are returned as is."""
        if isinstance(response, (StreamingResponse, FileResponse)):
            return response
        return cls(
            status_code=response.status_code,
            headers=[
                (name.decode("latin-1"), value.decode("latin-1"))
                for name, value in response.raw_headers
            ],
            body=base64.b64encode(response.body).decode("ascii"),
        )

    @classmethod
    def restore(cls, value: Any) -> Response:
        """Rebuild a Response from a snapshot or its dict form."""
        if isinstance(value, Response):
            return value
        snapshot = value if isinstance(value, cls) else cls.model_validate(value)
        response = Response(
            content=base64.b64decode(snapshot.body, validate=True),
            status_code=snapshot.status_code,
        )
        response.raw_headers = [
            (name.encode("latin-1"), header_value.encode("latin-1"))
            for name, header_value in snapshot.headers
        ]
        return response
