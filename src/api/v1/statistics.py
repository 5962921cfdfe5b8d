from fastapi import APIRouter

from dependencies.services import StatisticsDep
from schemas.api import ApiResponse


router = APIRouter()


@router.get("/statistics", response_model=ApiResponse[dict[str, int]])
def get_statistics(statistics: StatisticsDep) -> ApiResponse[dict[str, int]]:
    """In-process usage counters since the last restart."""
    return ApiResponse(data=statistics.snapshot(), message="Usage statistics")
