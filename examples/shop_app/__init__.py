from .demo import (  # noqa: F401
    bootstrap_driver,
    fetch_customer_feed,
    run_demo,
    seed_sample_data,
)

__all__ = [
    "bootstrap_driver",
    "seed_sample_data",
    "run_demo",
    "fetch_customer_feed",
]
