"""
Graduation Photo module
Dresses an uploaded portrait in a graduation gown through an image API and
burns a caption into the result.
"""
from .clients import get_generator, GeneratorResult
from .errors import ErrorKind, GradPhotoError
from .workflow import Workflow, WorkflowState

__all__ = ["Workflow", "WorkflowState", "get_generator", "GeneratorResult", "ErrorKind", "GradPhotoError"]
