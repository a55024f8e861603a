import os
import logging

logger = logging.getLogger(__name__)

FRONTEND_URL = os.getenv('FRONTEND_URL', 'http://localhost:3000')


def verification_link(token: str) -> str:
    return f"{FRONTEND_URL.rstrip('/')}/auth/verify?token={token}"


async def send_verification_email(user):
    """Hand the verification link to the outbound mail collaborator.

    Delivery is external to this service; the link is returned to the
    caller and only the user id is logged.
    """
    link = verification_link(user.verify_token)
    # the link is a credential, keep it out of the logs
    logger.info({'msg': 'verification_email', 'user_id': user.id})
    return link
