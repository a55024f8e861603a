from fastapi import APIRouter, Depends, Query, Response
from typing import Optional
from ..schemas.listings import ListingIn, ListingUpdateIn, ListingOut, ListingPageOut
from ..crud import search_listings, create_listing, get_listing, update_listing, delete_listing
from ..auth import get_current_user
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get('', response_model=ListingPageOut)
async def browse(
    category: Optional[str] = None,
    condition: Optional[str] = None,
    status: Optional[str] = None,
    is_giveaway: Optional[bool] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    q: Optional[str] = None,
    zipcode: Optional[str] = None,
    sort: str = 'newest',
    page: int = Query(1, ge=1),
    current_user: dict = Depends(get_current_user),
):
    return await search_listings(
        current_user['campus_id'],
        category=category,
        condition=condition,
        status=status,
        is_giveaway=is_giveaway,
        min_price=min_price,
        max_price=max_price,
        q=q,
        zipcode=zipcode,
        sort=sort,
        page=page,
    )


@router.post('', response_model=ListingOut, status_code=201)
async def create(payload: ListingIn, current_user: dict = Depends(get_current_user)):
    listing = await create_listing(current_user, payload)
    logger.info({'msg': 'listing_created', 'listing_id': listing.id, 'seller_id': current_user['id']})
    return listing


@router.get('/{listing_id}', response_model=ListingOut)
async def detail(listing_id: int, current_user: dict = Depends(get_current_user)):
    return await get_listing(listing_id, current_user)


@router.patch('/{listing_id}', response_model=ListingOut)
async def update(listing_id: int, payload: ListingUpdateIn, current_user: dict = Depends(get_current_user)):
    return await update_listing(listing_id, current_user, payload.model_dump(exclude_unset=True))


@router.delete('/{listing_id}', status_code=204)
async def remove(listing_id: int, current_user: dict = Depends(get_current_user)):
    await delete_listing(listing_id, current_user)
    return Response(status_code=204)
