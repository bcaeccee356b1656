from datetime import datetime


def now_hms() -> str:
    """Local wall clock for the 'updated at' line on fragments."""
    return datetime.now().strftime("%H:%M:%S")


def format_news_time(epoch: int | float) -> str:
    return datetime.fromtimestamp(float(epoch)).strftime("%b %d, %H:%M")
