# -*- coding: utf-8 -*-
"""
Exception hierarchy. Anything derived from PipeError that reaches the
top level ends the run.
"""


class PipeError(Exception):
    """Base class for imappipe errors"""


class CommandError(PipeError):
    """Server answered a command with a non-OK status"""


class StructureError(PipeError):
    """MIME part tree could not be walked"""


class RenderError(PipeError):
    """Template failed to compile or execute for one message"""


class WaitTerminated(PipeError):
    """Change wait ended without observing any mailbox change"""

    def __init__(self, message="wait exited without a mailbox update"):
        super().__init__(message)


class WaitFailed(PipeError):
    """Change wait mechanism raised an error"""
