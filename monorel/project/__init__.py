"""Projects and lazily-loaded package handles."""

from .package import Package
from .project import DependencyEdge, Discovery, Packages, Project

__all__ = ["DependencyEdge", "Discovery", "Package", "Packages", "Project"]
