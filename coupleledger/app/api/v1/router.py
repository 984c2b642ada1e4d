from fastapi import APIRouter
from coupleledger.app.api.v1 import users, couples, categories, expenses, budgets, incomes, recurring, summary, analytics, savings, optimization

api_router = APIRouter()
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(couples.router, prefix="/couple", tags=["couple"])
api_router.include_router(categories.router, prefix="/categories", tags=["categories"])
api_router.include_router(expenses.router, prefix="/expenses", tags=["expenses"])
api_router.include_router(budgets.router, prefix="/budgets", tags=["budgets"])
api_router.include_router(incomes.router, prefix="/incomes", tags=["incomes"])
api_router.include_router(recurring.router, prefix="/recurring-expenses", tags=["recurring-expenses"])
api_router.include_router(summary.router, prefix="/summary", tags=["summary"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
api_router.include_router(savings.router, prefix="/savings", tags=["savings"])
api_router.include_router(optimization.router, prefix="/optimization", tags=["optimization"])
