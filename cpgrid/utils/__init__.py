from .logging import setup_logging, configure_from

__all__ = ['setup_logging', 'configure_from']
