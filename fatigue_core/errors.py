"""
Fatigue Core Exceptions
Everything the pipeline raises derives from FatigueCoreError.
"""


class FatigueCoreError(Exception):
    """Base class for fatigue pipeline errors"""


class FeatureSchemaError(FatigueCoreError, ValueError):
    """Feature vector does not match the fixed feature schema"""


class ClassificationError(FatigueCoreError):
    """Classifier rejected its input or produced no usable output"""


class ClassifierLoadError(FatigueCoreError):
    """Classifier could not be loaded at startup (fatal)"""


class SessionStateError(FatigueCoreError):
    """Operation not valid for the current session state"""
