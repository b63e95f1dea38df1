"""Agent layer: outline generator, scene expander, canon checker/fixer, beat forge, summarizer."""
from backend.app.core.agents.base import AgentLLM
from backend.app.core.agents.beat_forge import BeatForge
from backend.app.core.agents.canon_checker import CanonChecker
from backend.app.core.agents.canon_fixer import CanonFixer
from backend.app.core.agents.outline_generator import OutlineGenerator
from backend.app.core.agents.scene_expander import SceneExpander, merge_generated_detail
from backend.app.core.agents.session_summarizer import SessionSummarizer

__all__ = [
    "AgentLLM",
    "BeatForge",
    "CanonChecker",
    "CanonFixer",
    "OutlineGenerator",
    "SceneExpander",
    "SessionSummarizer",
    "merge_generated_detail",
]
