"""Asyncio building blocks: logging setup, monitors, workers, cron jobs and websockets."""

__version__ = "0.0.2"