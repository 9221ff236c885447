from sqlalchemy import Column, Text, DateTime, func

from ..database import Base


class Visitor(Base):
    """
    Registra cada visitante distinto del sitio.
    El navegador identifica al visitante con la cookie "vid" (UUID aleatorio).
    Una fila se crea una sola vez y nunca se modifica ni se borra.
    """
    __tablename__ = "visitors"

    id = Column(Text, primary_key=True)
    first_seen = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
