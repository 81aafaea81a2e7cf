"""
Sample Data Seeder

Fills an empty database with tables 1..N and a starter menu so the
customer, cashier and kitchen screens have something to show in
development.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.models import MenuItem, Table

logger = logging.getLogger(__name__)

SAMPLE_MENU = [
    # Main Course
    ("Nasi Goreng Spesial", "Nasi goreng dengan ayam, udang, telur, dan sayuran segar", 35000, "Main Course"),
    ("Mie Ayam Bakso", "Mie ayam dengan bakso, pangsit, dan sayuran", 28000, "Main Course"),
    ("Gado-gado Jakarta", "Sayuran segar dengan bumbu kacang khas Jakarta", 22000, "Main Course"),
    ("Ayam Bakar Taliwang", "Ayam bakar dengan bumbu pedas khas Lombok", 45000, "Main Course"),
    ("Rendang Daging", "Rendang daging sapi dengan santan dan rempah", 55000, "Main Course"),
    ("Soto Ayam Lamongan", "Soto ayam dengan kuah bening, telur, dan kerupuk", 25000, "Main Course"),
    # Beverages
    ("Es Teh Manis", "Teh manis dingin segar", 8000, "Beverage"),
    ("Es Jeruk Nipis", "Jeruk nipis segar dengan es batu", 12000, "Beverage"),
    ("Es Cendol", "Minuman tradisional dengan cendol, santan, dan gula merah", 15000, "Beverage"),
    ("Kopi Tubruk", "Kopi hitam tradisional Indonesia", 10000, "Beverage"),
    # Snacks
    ("Tahu Isi", "Tahu goreng isi sayuran dengan bumbu kacang", 12000, "Snack"),
    ("Pisang Goreng", "Pisang kepok goreng dengan tepung renyah", 8000, "Snack"),
    # Desserts
    ("Klepon", "Kue tradisional isi gula merah dengan kelapa parut", 10000, "Dessert"),
    ("Es Doger", "Es serut dengan tape, alpukat, dan sirup", 18000, "Dessert"),
]


async def seed_sample_data(session: AsyncSession, table_count: int = 10) -> dict[str, int]:
    """
    Insert sample tables and menu items into empty tables only.

    Returns:
        Number of rows created per kind
    """
    created = {"tables": 0, "menu_items": 0}

    table_total = (await session.execute(select(func.count(Table.id)))).scalar() or 0
    if table_total == 0:
        for number in range(1, table_count + 1):
            session.add(Table(
                table_number=number,
                capacity=4 if number % 3 else 6,
                location="Indoor" if number <= table_count // 2 else "Outdoor",
            ))
        created["tables"] = table_count

    menu_total = (await session.execute(select(func.count(MenuItem.id)))).scalar() or 0
    if menu_total == 0:
        for name, description, price, category in SAMPLE_MENU:
            session.add(MenuItem(
                name=name,
                description=description,
                price=price,
                category=category,
                image_url=f"/images/{name}.jpg",
                available=True,
            ))
        created["menu_items"] = len(SAMPLE_MENU)

    await session.commit()
    if any(created.values()):
        logger.info(f"Seeded sample data: {created}")
    return created
