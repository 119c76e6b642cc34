"""goalgrid: yearly goal bingo cards.

Build an N×N grid of goals, lock it in, and tick goals off over the year.
A card can be drafted anonymously on the local machine and merged into an
account later.

Usage:
    # CLI (anonymous local draft)
    $ goalgrid draft new --year 2025
    $ goalgrid draft add "Run a half marathon"
    $ goalgrid draft sync --owner alice

    # HTTP API
    $ uvicorn goalgrid.web.app:create_app --factory
"""

__version__ = "0.1.0"
