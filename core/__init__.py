from .annotations import KittiLabelParser, PhillyLabelParser, SuperviselyParser
from .base import BaseAnnotationParser
from .cache import FrameCache
from .calib import KittiCalib
from .factory import AnnotationParserFactory
from .frame import FrameLoader

__all__ = [
    "BaseAnnotationParser",
    "KittiLabelParser",
    "PhillyLabelParser",
    "SuperviselyParser",
    "AnnotationParserFactory",
    "KittiCalib",
    "FrameLoader",
    "FrameCache",
]
