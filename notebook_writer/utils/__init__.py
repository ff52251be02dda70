from .logger import setup_logger
from .text import truncate_text, parse_page_count, chunk_text

__all__ = ["setup_logger", "truncate_text", "parse_page_count", "chunk_text"]
