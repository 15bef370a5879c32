from fastapi import APIRouter, Depends

from app.core.rate_limit import OperationClass, rate_limit
from app.modules.accounts.router import router as accounts_router
from app.modules.admin import router as admin_router
from app.modules.associations import router as associations_router
from app.modules.auth import router as auth_router
from app.modules.password_expiration import router as password_expiration_router

# Every versioned route counts against the generic per-IP budget
api_router = APIRouter(dependencies=[Depends(rate_limit(OperationClass.API_GENERIC))])

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

api_router.include_router(associations_router, prefix="/users", tags=["Associations"])

api_router.include_router(accounts_router, prefix="/accounts", tags=["Accounts"])

api_router.include_router(
    password_expiration_router,
    prefix="/admin",
    tags=["Admin - Password Expiration"],
)

api_router.include_router(admin_router, prefix="/admin", tags=["Admin - Operations"])
