from utils.formatters import format_amount, format_clock, format_moment

__all__ = ['format_amount', 'format_clock', 'format_moment']
