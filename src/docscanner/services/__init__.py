"""
DocScanner - Services Package

Image processing, boundary detection, batch orchestration and PDF assembly.
"""

from docscanner.services.boundary_detection import BoundaryDetector, DetectionStrategy, detect_boundary
from docscanner.services.pdf_assembly import PageSizeMode, assemble_pdf
from docscanner.services.processor import BatchProcessor
from docscanner.services.quality_presets import QualityPreset, ScannerConfig, get_quality_settings

__all__ = [
    "BatchProcessor",
    "BoundaryDetector",
    "DetectionStrategy",
    "PageSizeMode",
    "QualityPreset",
    "ScannerConfig",
    "assemble_pdf",
    "detect_boundary",
    "get_quality_settings",
]
