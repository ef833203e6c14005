from fastapi import APIRouter

from src.clients.router import router as clients_router
from src.employees.router import router as employees_router
from src.expenses.router import router as expenses_router
from src.orders.router import router as orders_router
from src.views.router import router as views_router

api_router = APIRouter()

api_router.include_router(clients_router)
api_router.include_router(employees_router)
api_router.include_router(expenses_router)
api_router.include_router(orders_router)
api_router.include_router(views_router)
