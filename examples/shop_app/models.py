"""
Entities for the rowgraph shop example.
"""

from __future__ import annotations

from rowgraph.core import BelongsTo, Entity, FloatField, HasMany, IntegerField, ManyToMany, StringField
from rowgraph.validation import MinValueValidator


class Customer(Entity):
    id = IntegerField(primary_key=True)
    name = StringField(nullable=False, max_length=120)
    email = StringField(unique=True)
    orders = HasMany("Order", key="id:customer_id")

    class Meta:
        table = "customers"


class Order(Entity):
    id = IntegerField(primary_key=True)
    customer_id = IntegerField()
    status = StringField(default="new", choices=("new", "paid", "shipped"))
    customer = BelongsTo(Customer, key="customer_id:id")
    lines = HasMany("LineItem", key="id:order_id")

    class Meta:
        table = "orders"


class LineItem(Entity):
    id = IntegerField(primary_key=True)
    order_id = IntegerField()
    product_id = IntegerField(nullable=False)
    quantity = IntegerField(default=1, validators=[MinValueValidator(1)])

    class Meta:
        table = "line_items"


class Product(Entity):
    product_id = IntegerField(primary_key=True)
    sku = StringField(nullable=False, max_length=40)
    price = FloatField(default=0.0, validators=[MinValueValidator(0)])
    categories = ManyToMany("Category", key="product_id:category_id", link_table="product_categories")

    class Meta:
        table = "products"


class Category(Entity):
    category_id = IntegerField(primary_key=True)
    name = StringField(nullable=False, max_length=80)

    class Meta:
        table = "categories"
