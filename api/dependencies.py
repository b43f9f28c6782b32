"""
API依赖项
"""
from fastapi import Request

from application.services.payment_service import PaymentService


async def get_payment_service(request: Request) -> PaymentService:
    """The process-wide PaymentService built in main.lifespan.

    A single instance is shared so its creation locks serialise concurrent
    requests for the same (user, plan).
    """
    return request.app.state.payment_service
