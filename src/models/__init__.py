# Importar todos los modelos para que create_all() los registre
from .visit_stats import VisitStats
from .visitor import Visitor

__all__ = [
    "VisitStats",
    "Visitor",
]
