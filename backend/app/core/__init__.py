"""Session prep core: stores, pipeline state, scene conversion, canon context, and export."""
from .pipeline_state import PrepStage, derive_stage, session_stage
from .scene_converter import ConversionResult, convert_outline_to_scenes
from .export import render_session_markdown

__all__ = [
    "PrepStage",
    "derive_stage",
    "session_stage",
    "ConversionResult",
    "convert_outline_to_scenes",
    "render_session_markdown",
]
