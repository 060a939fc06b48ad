import importlib

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from storefront.config import settings
from storefront.utils.logging import get_logger

log = get_logger(__name__)

Base = declarative_base()

# Every model module must be imported before create_all so metadata is populated.
MODEL_MODULES = [
    "storefront.models.user",
    "storefront.models.category",
    "storefront.models.product",
    "storefront.models.cart",
    "storefront.models.cart_item",
    "storefront.models.order",
]


def make_engine(url: str, **kwargs) -> Engine:
    """
    Build an engine for `url`.

    SQLite gets foreign keys switched on and pysqlite's implicit transaction
    handling replaced by an explicit BEGIN IMMEDIATE, so SAVEPOINTs and
    rollbacks behave like they do on PostgreSQL. Taking the write lock up
    front makes concurrent writers wait on the busy timeout instead of failing
    on a SHARED to RESERVED upgrade.
    """
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 30)
        kwargs["connect_args"] = connect_args
    engine = create_engine(url, future=True, echo=False, **kwargs)

    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _sqlite_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
)


def import_models():
    for mod in MODEL_MODULES:
        importlib.import_module(mod)


def init_db(reset: bool = False, bind: Engine = None):
    """
    Initialize DB schema.

    With `reset` (or RESET_DB set) the tables are dropped and recreated,
    otherwise existing tables are left in place.
    """
    bind = bind or engine
    import_models()
    if reset or settings.RESET_DB:
        log.info("Resetting database schema")
        Base.metadata.drop_all(bind=bind)
    Base.metadata.create_all(bind=bind)
    log.info("Database initialized: %s", sorted(Base.metadata.tables))


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
