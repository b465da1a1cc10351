"""Placeholder upsell page. There is no payment behaviour behind it."""

from fastapi import APIRouter

router = APIRouter()


@router.get("")
async def upgrade_info():
    return {
        "title": "Upgrade Your Account",
        "description": (
            "Monthly subscriptions are not available yet. Payments need a "
            "secure billing backend, which this service does not include."
        ),
        "subscribe_enabled": False,
    }
