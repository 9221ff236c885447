from sqlalchemy import Column, Integer, BigInteger

from ..database import Base


class VisitStats(Base):
    # Fila única (id=1) con los contadores agregados
    __tablename__ = "visit_stats"

    id = Column(Integer, primary_key=True, autoincrement=False)
    total_visits = Column(BigInteger, nullable=False, default=0, server_default="0")
    unique_visitors = Column(BigInteger, nullable=False, default=0, server_default="0")
