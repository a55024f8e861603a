from fastapi import APIRouter
from typing import List
from ..schemas.users import CampusOut
from ..crud import list_campuses
from ..cache import cache_campuses, get_cached_campuses

router = APIRouter()


@router.get('', response_model=List[CampusOut])
async def campuses():
    # Check cache first, the directory changes only when seeded
    cached = await get_cached_campuses()
    if cached:
        return cached

    result = [CampusOut.model_validate(c).model_dump() for c in await list_campuses()]
    await cache_campuses(result, ttl=600)
    return result
