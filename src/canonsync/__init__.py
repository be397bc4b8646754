"""
canonsync - canonical content fingerprints and incremental sync planning

Normalizes authored course content, fingerprints it and plans what changed
since the last sync.
"""

__version__ = "0.1.0"

# Re-export core models for convenience
from canonsync.core.config.models import CanonsyncConfig
from canonsync.core.content.models import Bundle, Course, Icon, Question, QuestionOption

__all__ = [
    "Bundle",
    "CanonsyncConfig",
    "Course",
    "Icon",
    "Question",
    "QuestionOption",
    "__version__",
]
