from .stats import SessionSummary, format_summary, format_time, format_time_detailed, summarize_session

__all__ = ["SessionSummary", "format_summary", "format_time", "format_time_detailed", "summarize_session"]
