"""
Error response models for the switchyard framework.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Body of the JSON 500 response rendered by the application boundary."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Internal Server Error",
                "message": "Something went wrong",
                "code": 0,
            }
        }
    )

    error: str = Field(
        ...,
        description="Short, stable error title"
    )

    message: Optional[str] = Field(
        None,
        description="Human-readable detail; the exception message in debug mode"
    )

    code: int = Field(
        0,
        description="Application-specific error code carried by the exception, 0 if none"
    )

    def model_dump_json(self, **kwargs):
        """Serialize, leaving out unset optional fields by default."""
        kwargs.setdefault("exclude_none", True)
        return super().model_dump_json(**kwargs)
