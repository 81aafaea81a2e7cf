import asyncio

from sqlalchemy import func, select

from restopos.core.config import DEFAULT_TOKEN_SECRET, EnvironmentMode, Settings
from restopos.database import async_session_maker
from restopos.models import MenuItem, Table
from restopos.seed import SAMPLE_MENU, seed_sample_data
from restopos.services.qr import render_qr_data_url


async def _seed(table_count: int):
    async with async_session_maker() as session:
        return await seed_sample_data(session, table_count)


async def _counts():
    async with async_session_maker() as session:
        tables = (await session.execute(select(func.count(Table.id)))).scalar()
        menu = (await session.execute(select(func.count(MenuItem.id)))).scalar()
        return tables, menu


def test_seed_fills_empty_database_once():
    assert asyncio.run(_seed(5)) == {"tables": 5, "menu_items": len(SAMPLE_MENU)}
    assert asyncio.run(_counts()) == (5, len(SAMPLE_MENU))

    assert asyncio.run(_seed(5)) == {"tables": 0, "menu_items": 0}
    assert asyncio.run(_counts()) == (5, len(SAMPLE_MENU))


def test_seed_keeps_existing_menu(menu):
    created = asyncio.run(_seed(3))
    # menu fixture already created tables and menu items
    assert created == {"tables": 0, "menu_items": 0}


def test_production_requires_real_secret_and_database():
    settings = Settings(
        env_mode="production",
        token_secret=DEFAULT_TOKEN_SECRET,
        database_url="sqlite+aiosqlite:///./pos.db",
    )
    assert settings.env_mode is EnvironmentMode.PRODUCTION
    assert settings.validate_production_config() == ["TOKEN_SECRET", "DATABASE_URL"]


def test_development_config_is_always_valid():
    settings = Settings(env_mode="DEVELOPMENT", token_secret=DEFAULT_TOKEN_SECRET)
    assert settings.is_development
    assert settings.validate_production_config() == []


def test_customer_url_and_cors_are_normalised():
    settings = Settings(
        customer_app_url="https://order.example.com/",
        cors_origins="https://a.example.com, https://b.example.com,",
    )
    assert settings.customer_app_url == "https://order.example.com"
    assert settings.cors_origins_list == ["https://a.example.com", "https://b.example.com"]


def test_qr_image_is_png_data_url():
    assert render_qr_data_url("http://localhost:3000/order?token=abc").startswith(
        "data:image/png;base64,"
    )
