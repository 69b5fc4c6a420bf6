"""
WaniKani review client

Fetches due reviews from the WaniKani API, quizzes meanings and readings
one at a time, and reports the results back.
"""

from . import kana
from . import answers
from . import structured
from . import scheduler
from . import session
from . import api

__version__ = "0.1.0"
__all__ = ["kana", "answers", "structured", "scheduler", "session", "api"]
