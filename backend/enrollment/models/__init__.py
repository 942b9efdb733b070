from .tables import Base
