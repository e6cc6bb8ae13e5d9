from greeks_rl.models.base import Base
from greeks_rl.models.rl import RLModelSnapshot

__all__ = [
    "Base",
    "RLModelSnapshot",
]
