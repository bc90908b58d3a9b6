import math
import re
from typing import List, Optional

from pymongo import DESCENDING
from pymongo.database import Database

from database import get_documents, serialize_doc


ALL = "All"
ROWS_PER_PAGE = 6


def columns_for_width(width: Optional[int]) -> int:
    if width is None:
        return 1
    if width >= 1024:
        return 3
    if width >= 640:
        return 2
    return 1


def items_per_page(columns: int) -> int:
    return max(1, columns) * ROWS_PER_PAGE


def page_count(total: int, per_page: int) -> int:
    return math.ceil(total / per_page) if per_page else 0


def paginate(items: List[dict], page: int, per_page: int) -> List[dict]:
    page = max(1, page)
    start = (page - 1) * per_page
    return items[start:start + per_page]


def _active(value: Optional[str]) -> bool:
    return bool(value) and value != ALL


def build_query(q: Optional[str] = None, category: Optional[str] = None, subcategory: Optional[str] = None) -> dict:
    query = {}
    if q:
        query["name"] = {"$regex": re.escape(q), "$options": "i"}
    if _active(category):
        query["category"] = category
    if _active(subcategory):
        query["subcategory"] = subcategory
    return query


def search_products(db: Database, q: Optional[str] = None, category: Optional[str] = None, subcategory: Optional[str] = None) -> List[dict]:
    """Full filtered result set, newest first."""
    query = build_query(q, category, subcategory)
    docs = get_documents(db, "products", query, sort=[("created_at", DESCENDING)])
    return [serialize_doc(d) for d in docs]


def catalog_page(products: List[dict], page: int, columns: int) -> dict:
    per_page = items_per_page(columns)
    return {
        "items": paginate(products, page, per_page),
        "page": max(1, page),
        "per_page": per_page,
        "pages": page_count(len(products), per_page),
        "total": len(products),
    }


def list_categories(db: Database) -> List[dict]:
    docs = get_documents(db, "categories", {}, sort=[("name", 1)])
    return [serialize_doc(d) for d in docs]


def find_category(db: Database, name: str) -> Optional[dict]:
    return db["categories"].find_one({"name": name})
