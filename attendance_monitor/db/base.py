# attendance_monitor/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models of the attendance service.

    Models register themselves on import; `db.session` imports them before
    any create_all/drop_all.
    """
    pass
