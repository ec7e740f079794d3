"""Response envelope models.

Consistent response format for all API endpoints: {"data": ...} on success,
{"error": {...}} on failure.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Standard response envelope for single resources and collections.

    Usage:
        @router.get("/competencies/{competency_id}")
        async def get_competency(...) -> DataResponse[CompetencyRead]:
            competency = await catalog.get_competency(db, competency_id)
            return DataResponse(data=CompetencyRead.model_validate(competency))
    """

    data: T


class ErrorDetail(BaseModel):
    """Error detail for response body.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        details: Optional list of field-level errors (for validation).
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope.

    Usage in exception handlers:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=ErrorDetail(code=exc.code, message=exc.message)
            ).model_dump(),
        )
    """

    error: ErrorDetail
