from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.responses import api_success
from app.schemas import NewsletterSubscribeRequest, NewsletterTokenRequest
from app.serializers import subscriber_to_dict
from app.services import newsletter_service

router = APIRouter(prefix="/api/v1/newsletter", tags=["newsletter"])


@router.post("/subscribe")
async def subscribe(data: NewsletterSubscribeRequest, db: AsyncSession = Depends(get_db)):
    await newsletter_service.subscribe(db, data.email)
    return api_success(None, "Please check your email to confirm your subscription.")


@router.post("/verify")
async def verify(data: NewsletterTokenRequest, db: AsyncSession = Depends(get_db)):
    subscriber = await newsletter_service.verify(db, data.email, data.token)
    return api_success(subscriber_to_dict(subscriber), "Subscription confirmed.")


@router.post("/unsubscribe")
async def unsubscribe(data: NewsletterSubscribeRequest, db: AsyncSession = Depends(get_db)):
    await newsletter_service.request_unsubscribe(db, data.email)
    return api_success(None, "Please check your email to confirm unsubscription.")


@router.post("/unsubscribe/verify")
async def verify_unsubscribe(data: NewsletterTokenRequest, db: AsyncSession = Depends(get_db)):
    subscriber = await newsletter_service.verify_unsubscribe(db, data.email, data.token)
    return api_success(subscriber_to_dict(subscriber), "You have been unsubscribed.")
