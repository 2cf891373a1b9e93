"""
Terminal progress bar for downloads.
"""

import sys
from typing import Optional, TextIO

from sfdxprebuilt.core.download import DownloadProgress

BAR_LENGTH = 40


def format_eta(eta_seconds: Optional[float]) -> str:
    """
    Format an ETA with h/m/s units.

    Example:
        >>> format_eta(3725)
        '1h 2m 5s'
    """
    if not eta_seconds or eta_seconds <= 0:
        return "..."
    eta_secs = int(eta_seconds)
    if eta_secs >= 3600:
        hours = eta_secs // 3600
        minutes = (eta_secs % 3600) // 60
        seconds = eta_secs % 60
        return f"{hours}h {minutes}m {seconds}s"
    if eta_secs >= 60:
        return f"{eta_secs // 60}m {eta_secs % 60}s"
    return f"{eta_secs}s"


def render_bar(percentage: float, length: int = BAR_LENGTH) -> str:
    filled = int(length * min(max(percentage, 0.0), 100.0) / 100)
    return "=" * filled + "-" * (length - filled)


class ProgressBar:
    """
    Download progress callback drawing a single updating line.

    The bar is only drawn when the stream is a terminal.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stderr
        self.enabled = bool(getattr(self.stream, "isatty", lambda: False)())
        self._drawn = False

    def __call__(self, progress: DownloadProgress) -> None:
        if not self.enabled:
            return

        if progress.percentage > 0:
            speed_mbps = progress.speed_bps / (1024 * 1024) if progress.speed_bps else 0
            line = (
                f"\r  Downloading: [{render_bar(progress.percentage)}] "
                f"{progress.percentage:.1f}% | {speed_mbps:.1f} MB/s | "
                f"ETA: {format_eta(progress.eta_seconds)}"
            )
        else:
            line = f"\r  Downloading: {progress}"

        self.stream.write(line)
        self.stream.flush()
        self._drawn = True

        if progress.percentage >= 100:
            self.finish()

    def finish(self) -> None:
        """Clear the progress line."""
        if self._drawn:
            self.stream.write("\r" + " " * 100 + "\r")
            self.stream.flush()
            self._drawn = False
