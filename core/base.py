"""
Core Base Classes

Abstract interfaces for the loaders and exporters that surround the
reconstruction core. Reconstruction components consume a VolumeData and
produce SliceImage / Mesh3D values; loaders and exporters sit at the edges.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any


class BaseLoader(ABC):
    """Abstract base class for data loaders."""
    
    @abstractmethod
    def load(self, source: Any) -> Any:
        """
        Load data from a source.
        
        Args:
            source: Path, directory or list of paths to read
            
        Returns:
            The loaded object (VolumeData or Mesh3D)
        """
        pass
    
    def can_load(self, source: str | Path) -> bool:
        """
        Check if this loader can handle the given source.
        
        Args:
            source: Path to check
            
        Returns:
            True if this loader can handle the source
        """
        return True


class BaseExporter(ABC):
    """Abstract base class for file exporters."""
    
    #: File extension written by this exporter (with leading dot)
    extension: str = ""
    
    @abstractmethod
    def export(self, data: Any, output_path: str | Path) -> Any:
        """
        Write data to disk.
        
        Args:
            data: Object to serialize
            output_path: Destination file or directory
            
        Returns:
            Path (or list of paths) that were written
        """
        pass
    
    def default_path(self, prefix: str | Path) -> Path:
        """Append this exporter's extension to an output prefix."""
        prefix = Path(prefix)
        if prefix.suffix.lower() == self.extension:
            return prefix
        return prefix.with_name(prefix.name + self.extension)
