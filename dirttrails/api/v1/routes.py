from fastapi import APIRouter
from dirttrails.api.v1.endpoints import payments, wallets, webhooks

router = APIRouter()

router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
router.include_router(payments.router, prefix="/payments", tags=["payments"])
router.include_router(wallets.router, prefix="/wallets", tags=["wallets"])
router.include_router(wallets.admin_router, prefix="/admin", tags=["admin"])
