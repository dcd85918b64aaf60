from .rng_manager import (
    RngManager,
    activate_global_hooks,
    deactivate_global_hooks,
    UncontrolledRandomError,
)

__all__ = [
    "RngManager",
    "activate_global_hooks",
    "deactivate_global_hooks",
    "UncontrolledRandomError",
]
