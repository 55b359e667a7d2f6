"""
Shop example: cascading saves and nested graph loading on SQLite.
"""

from __future__ import annotations

from typing import Any, Dict, List

from rowgraph.adapters import SQLiteAdapter
from rowgraph.driver import SQLQueryDriver
from rowgraph.utils import get_logger
from rowgraph.utils.performance import PerformanceTracker

from .models import Category, Customer, Product

SCHEMA = (
    """CREATE TABLE IF NOT EXISTS customers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT UNIQUE
    )""",
    """CREATE TABLE IF NOT EXISTS orders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        customer_id INTEGER,
        status TEXT NOT NULL DEFAULT 'new'
    )""",
    """CREATE TABLE IF NOT EXISTS line_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_id INTEGER,
        product_id INTEGER NOT NULL,
        quantity INTEGER NOT NULL DEFAULT 1
    )""",
    """CREATE TABLE IF NOT EXISTS products (
        product_id INTEGER PRIMARY KEY AUTOINCREMENT,
        sku TEXT NOT NULL,
        price REAL
    )""",
    """CREATE TABLE IF NOT EXISTS categories (
        category_id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS product_categories (
        product_id INTEGER NOT NULL,
        category_id INTEGER NOT NULL
    )""",
)

logger = get_logger("examples.shop")


def bootstrap_driver(dsn: str = "sqlite:///:memory:") -> SQLQueryDriver:
    tracker = PerformanceTracker(get_logger("examples.shop.performance"))
    driver = SQLQueryDriver.connect(SQLiteAdapter(), dsn, tracker=tracker)
    for statement in SCHEMA:
        driver.execute(statement)
    return driver


def seed_sample_data(driver: SQLQueryDriver) -> Dict[str, List[Dict[str, Any]]]:
    products = []
    for sku, price in (("TEA-01", 4.5), ("MUG-02", 9.0), ("POT-03", 21.0)):
        product = Product(sku=sku, price=price).use_driver(driver)
        product.save()
        products.append(product)

    for name in ("Kitchen", "Gifts"):
        Category(name=name).use_driver(driver).save()
    # link rows carry no entity of their own
    for product_id, category_id in ((1, 1), (2, 1), (2, 2), (3, 1)):
        driver.execute(
            "INSERT INTO product_categories (product_id, category_id) VALUES (?, ?)",
            (product_id, category_id),
        )

    customers = []
    for name, email, orders in (
        ("Ada", "ada@example.com", [[(1, 2), (2, 1)], [(3, 1)]]),
        ("Grace", "grace@example.com", [[(2, 4)]]),
    ):
        customer = Customer(name=name, email=email).use_driver(driver)
        customer.set_attributes(
            {
                "orders": [
                    {"lines": [{"product_id": pid, "quantity": qty} for pid, qty in lines]}
                    for lines in orders
                ]
            }
        )
        customer.cascade_save()
        customers.append(customer)

    logger.info("Seeded %s customers and %s products", len(customers), len(products))
    return {
        "customers": [customer.to_dict() for customer in customers],
        "products": [product.to_dict() for product in products],
    }


def fetch_customer_feed(driver: SQLQueryDriver) -> List[Dict[str, Any]]:
    prices = {
        product.product_id: product.price for product in Product().use_driver(driver).find_all()
    }
    feed: List[Dict[str, Any]] = []
    for customer in Customer().use_driver(driver).find_all(order="name"):
        total = sum(
            prices.get(line.product_id, 0.0) * line.quantity
            for order in customer.orders
            for line in order.lines
        )
        feed.append(
            {
                "name": customer.name,
                "orders": len(customer.orders),
                "total": round(total, 2),
            }
        )
    return feed


def run_demo(dsn: str = "sqlite:///:memory:") -> List[Dict[str, Any]]:
    driver = bootstrap_driver(dsn)
    try:
        seed_sample_data(driver)
        return fetch_customer_feed(driver)
    finally:
        driver.close()


if __name__ == "__main__":
    for entry in run_demo("sqlite:///shop_demo.db"):
        print(f"{entry['name']}: {entry['orders']} order(s), {entry['total']:.2f}")
