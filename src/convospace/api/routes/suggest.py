"""Prompt suggestion route."""

from fastapi import APIRouter, Query

from convospace.api.schemas import SuggestResponse
from convospace.suggest import suggest_suffix

router = APIRouter()


@router.get("", response_model=SuggestResponse)
def suggest(q: str = Query("", description="Prompt typed so far")) -> SuggestResponse:
    return SuggestResponse(suggestion=suggest_suffix(q))
