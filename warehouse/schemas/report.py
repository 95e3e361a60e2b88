from pydantic import BaseModel


class StockByCategory(BaseModel):
    category_id: int
    category_name: str
    total_products: int
    total_stock: int
    total_value: float


class LowStockProduct(BaseModel):
    id: int
    name: str
    product_code: str
    quantity: int
    category_name: str


class DashboardStats(BaseModel):
    total_products: int
    total_categories: int
    total_stock: int
    total_value: float
    low_stock_count: int
