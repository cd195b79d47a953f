"""Background workers for async processing tasks."""

from storymint.workers.mint_worker import process_next_event, run_mint_worker

__all__ = [
    "process_next_event",
    "run_mint_worker",
]
