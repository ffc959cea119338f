"""
数据库配置 - 持久化层
所有写操作通过显式事务边界进行（见 services/unit_of_work.py）
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from rental.config import settings

Base = declarative_base()

# 连接级执行选项：本事务最多等锁多少秒（见 UnitOfWork）
LOCK_TIMEOUT_OPTION = "rental_lock_timeout"


def _enable_sqlite_transactions(engine: Engine, in_memory: bool, busy_timeout: float) -> None:
    """
    接管 pysqlite 的事务控制

    pysqlite 默认延迟到第一条 DML 才发 BEGIN，且不支持可靠的 SAVEPOINT。
    这里关闭驱动的隐式事务，改为事务开始时显式发出 BEGIN IMMEDIATE：
    写锁在事务开始时即获取，同一预订的并发退房在此排队，
    而不是在持有读锁的情况下升级写锁失败（database is locked）。
    等锁时长默认 busy_timeout，连接带 LOCK_TIMEOUT_OPTION 时按其收紧。
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        if not in_memory:
            # 启用 WAL 模式以提高并发读性能
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        wait = conn.get_execution_options().get(LOCK_TIMEOUT_OPTION, busy_timeout)
        conn.exec_driver_sql(f"PRAGMA busy_timeout = {int(wait * 1000)}")
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(url: str, **kwargs) -> Engine:
    """创建数据库引擎（SQLite 额外启用显式事务控制）"""
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        connect_args = dict(kwargs.pop("connect_args", {}))
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", settings.SQLITE_BUSY_TIMEOUT)
        kwargs["connect_args"] = connect_args

    engine = create_engine(url, **kwargs)

    if is_sqlite:
        in_memory = ":memory:" in url or url.rstrip("/") in ("sqlite:", "sqlite://")
        _enable_sqlite_transactions(engine, in_memory, connect_args["timeout"])
    return engine


engine = create_db_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """依赖注入：获取数据库会话"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None):
    """初始化数据库表"""
    from rental.models import entities  # noqa
    Base.metadata.create_all(bind=bind or engine)


def get_session_factory():
    """依赖注入：获取会话工厂（服务自行管理事务边界）"""
    return SessionLocal
