from fastapi import APIRouter, Depends
from typing import List
from ..schemas.moderation import ReportIn, ReportOut
from ..crud import create_report, list_reports
from ..auth import get_current_user, require_admin

router = APIRouter()


@router.post('', response_model=ReportOut, status_code=201)
async def report(payload: ReportIn, current_user: dict = Depends(get_current_user)):
    return await create_report(current_user, payload)


@router.get('', response_model=List[ReportOut])
async def reports(current_user: dict = Depends(require_admin)):
    return await list_reports()
