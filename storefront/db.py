import logging
import os
from decimal import Decimal

from fastapi import Request
from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base, Product

logger = logging.getLogger(__name__)

DB_USER = os.getenv("DB_USER", "app")
DB_PASS = os.getenv("DB_PASS", "app")
DB_NAME = os.getenv("DB_NAME", "appdb")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
DB_CONNECT_TIMEOUT = int(os.getenv("DB_CONNECT_TIMEOUT", "5"))
DB_STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "5000"))
SEED_CATALOG = os.getenv("SEED_CATALOG", "true").lower() in ("1", "true", "yes")

# psycopg3 driver
DATABASE_URL = os.getenv("DATABASE_URL") or (
    f"postgresql+psycopg://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)

SAMPLE_PRODUCTS = [
    ("Laptop", "High-performance laptop for developers", "999.99", 10, "/laptop.jpg"),
    ("Mouse", "Wireless ergonomic mouse", "29.99", 50, "/mouse.jpg"),
    ("Keyboard", "Mechanical keyboard with RGB lights", "89.99", 30, "/keyboard.jpg"),
    ("Monitor", '27" 4K monitor', "399.99", 15, "/monitor.jpg"),
    ("Headphones", "Noise-cancelling headphones", "199.99", 25, "/headphones.jpg"),
]


def make_engine(url: str = DATABASE_URL) -> Engine:
    """
    Build the process-wide pooled engine.
    Every statement is bounded server-side so a slow query can't pin a request.
    """
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=DB_POOL_SIZE,
        future=True,
        connect_args={
            "connect_timeout": DB_CONNECT_TIMEOUT,
            "options": f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}",
        },
    )


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


def init_db(engine: Engine, seed: bool = SEED_CATALOG) -> None:
    """
    Create tables (idempotent), then seed the sample catalog if it is empty.
    Called once at application startup.
    """
    Base.metadata.create_all(bind=engine)
    if seed:
        with Session(engine) as s, s.begin():
            seed_products(s)


def seed_products(session: Session) -> int:
    count = session.scalar(select(func.count()).select_from(Product))
    if count:
        return 0
    session.add_all(
        Product(name=name, description=desc, price=Decimal(price), stock=stock, image_url=image)
        for name, desc, price, stock, image in SAMPLE_PRODUCTS
    )
    logger.info("Seeded %d sample products", len(SAMPLE_PRODUCTS))
    return len(SAMPLE_PRODUCTS)


def get_session(request: Request):
    """
    FastAPI dependency: yields a DB session from the app's session factory,
    rolls back on error and always closes it.
    Handlers own their transaction boundaries.
    """
    s: Session = request.app.state.sessions()
    try:
        yield s
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
