"""Logger module for confstore."""

from confstore.logger.logger import Logger, get_logger, init_logger
from confstore.logger.postgres_writer import PostgresWriter
from confstore.logger.types import Category, Field, Level, LogEntry

__all__ = [
    "Logger",
    "get_logger",
    "init_logger",
    "PostgresWriter",
    "Category",
    "Level",
    "LogEntry",
    "Field",
]
